import os
import struct
import tempfile
import unittest
from unittest import mock

import pygame

from chip8 import KEY_MAPPINGS, get_args, handle_events, main, square_wave
from machine import Chip8State, RunMode


def key_event(kind, key):
    return pygame.event.Event(kind, key=key)


class TestArgs(unittest.TestCase):
    def test_defaults(self):
        args = get_args(["-f", "pong.ch8"])
        self.assertEqual(args.file, "pong.ch8")
        self.assertEqual((args.scale, args.ipf, args.fps), (15, 11, 60))
        self.assertIsNone(args.seed)
        self.assertFalse(args.mute)

    def test_options(self):
        args = get_args(["--file", "pong.ch8", "--scale", "8", "--ipf", "20", "--seed", "3", "--mute"])
        self.assertEqual((args.scale, args.ipf, args.seed, args.mute), (8, 20, 3, True))

    def test_rom_is_required(self):
        with self.assertRaises(SystemExit):
            get_args([])

    def test_budget_must_be_positive(self):
        with self.assertRaises(SystemExit):
            get_args(["-f", "pong.ch8", "--ipf", "0"])

    def test_unreadable_rom_exits_before_starting(self):
        with self.assertRaises(SystemExit) as cm:
            main(["-f", "invalid/rom/path", "--mute"])
        self.assertIn("invalid/rom/path", str(cm.exception.code))

    def test_display_failure_releases_pygame(self):
        fd, path = tempfile.mkstemp(suffix=".ch8")
        with os.fdopen(fd, "wb") as f:
            f.write(b"\x12\x00")
        self.addCleanup(os.remove, path)
        with mock.patch("chip8.Screen", side_effect=pygame.error("no video device")), \
                mock.patch("chip8.pygame.init"), mock.patch("chip8.pygame.quit") as quit_:
            with self.assertRaises(SystemExit) as cm:
                main(["-f", path, "--mute"])
        quit_.assert_called_once_with()
        self.assertIn("no video device", str(cm.exception.code))


class TestKeyboard(unittest.TestCase):
    def test_mapping_covers_every_key(self):
        self.assertEqual(sorted(KEY_MAPPINGS.values()), list(range(16)))

    def test_press_and_release(self):
        state = Chip8State()
        handle_events(state, [key_event(pygame.KEYDOWN, pygame.K_q)])
        self.assertTrue(state.keypad[0x4])
        handle_events(state, [key_event(pygame.KEYUP, pygame.K_q)])
        self.assertFalse(state.keypad[0x4])

    def test_unmapped_keys_are_ignored(self):
        state = Chip8State()
        handle_events(state, [key_event(pygame.KEYDOWN, pygame.K_p)])
        self.assertFalse(any(state.keypad.keys))

    def test_escape_quits(self):
        state = Chip8State()
        handle_events(state, [key_event(pygame.KEYDOWN, pygame.K_ESCAPE),
                              key_event(pygame.KEYDOWN, pygame.K_v)])
        self.assertIs(state.mode, RunMode.QUIT)
        self.assertFalse(state.keypad[0xF])

    def test_window_close_quits(self):
        state = Chip8State()
        handle_events(state, [pygame.event.Event(pygame.QUIT)])
        self.assertIs(state.mode, RunMode.QUIT)

    def test_space_toggles_pause(self):
        state = Chip8State()
        handle_events(state, [key_event(pygame.KEYDOWN, pygame.K_SPACE)])
        self.assertIs(state.mode, RunMode.PAUSED)
        handle_events(state, [key_event(pygame.KEYDOWN, pygame.K_SPACE)])
        self.assertIs(state.mode, RunMode.RUNNING)


class TestBeep(unittest.TestCase):
    def test_square_wave(self):
        wave = square_wave(frequency=441, sample_rate=44100, volume=0.5)
        samples = struct.unpack(f"={len(wave) // 2}h", wave)
        self.assertEqual(len(samples), 100)
        self.assertEqual(samples[0], 16383)
        self.assertEqual(samples[-1], -16383)
        self.assertEqual(sum(samples), 0)


if __name__ == "__main__":
    unittest.main()
