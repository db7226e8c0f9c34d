# CHIP-8 INFO
# https://chip-8.github.io/extensions/#chip-8
# https://chip-8.github.io/links/
#
# MASTERING CHIP-8
# https://github.com/mattmikolay/chip-8/wiki/Mastering-CHIP%E2%80%908
#
# TEST SUITE
# https://github.com/Timendus/chip8-test-suite
#
# KEYPAD LAYOUT
#   1 2 3 C        1 2 3 4
#   4 5 6 D  --->  Q W E R
#   7 8 9 E        A S D F
#   A 0 B F        Z X C V


import argparse
import random
import sys
from array import array

import os
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "no welcome message"   # this env var disable pygame's welcome message when imported
import pygame
from pygame.locals import (
    K_1, K_2, K_3, K_4,
    K_q, K_w, K_e, K_r,
    K_a, K_s, K_d, K_f,
    K_z, K_x, K_c, K_v,
    K_ESCAPE, K_SPACE,
    KEYDOWN, KEYUP, QUIT,
)

from cpu import Cpu
from driver import CycleDriver, INSTRUCTIONS_PER_FRAME
from machine import DEBUG, SCREEN_HEIGHT, SCREEN_WIDTH, Chip8Error, Chip8State, RomError, RunMode, read_rom
from timers import TIMER_FREQ


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_1: 0x1, K_2: 0x2, K_3: 0x3, K_4: 0xC,
    K_q: 0x4, K_w: 0x5, K_e: 0x6, K_r: 0xD,
    K_a: 0x7, K_s: 0x8, K_d: 0x9, K_f: 0xE,
    K_z: 0xA, K_x: 0x0, K_c: 0xB, K_v: 0xF,
}

SCALE = 15
BLUE = pygame.Color(80,69,155,255)
LIGHT_BLUE = pygame.Color(136,126,203,255)
BEEP_FREQUENCY = 440        # Hz
SAMPLE_RATE = 44100
VOLUME = 0.25


# ******************** UTILITIES SECTION
def get_args(argv=None):
    parser = argparse.ArgumentParser(description="CHIP-8 virtual machine")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("--scale", type=int, default=SCALE, help="screen pixels per CHIP-8 pixel")
    parser.add_argument("--ipf", type=int, default=INSTRUCTIONS_PER_FRAME, help="instructions executed per frame")
    parser.add_argument("--fps", type=int, default=TIMER_FREQ, help="frames per second, timers tick once per frame")
    parser.add_argument("--seed", type=int, default=None, help="seed of the random number generator")
    parser.add_argument("--mute", action="store_true", help="disable the buzzer")
    args = parser.parse_args(argv)
    for name in ("scale", "ipf", "fps"):
        if getattr(args, name) < 1:
            parser.error(f"--{name} must be a positive number")
    return args

def square_wave(frequency=BEEP_FREQUENCY, sample_rate=SAMPLE_RATE, volume=VOLUME):
    """one period of a signed 16 bit mono square wave, looped by the mixer"""
    period = max(2, sample_rate // frequency)
    amplitude = int(32767 * volume)
    half = period // 2
    return array('h', [amplitude] * half + [-amplitude] * (period - half)).tobytes()


# ******************** I/O SECTION
class Screen:
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT, s=SCALE, bg_color=BLUE, fg_color=LIGHT_BLUE):
        self.w, self.h, self.scale = w, h, s
        self.background = bg_color
        self.foreground = fg_color
        self.surface = pygame.display.set_mode(
            (w * self.scale, h * self.scale),
        )
        self.surface.fill(self.background)

    def render(self, framebuffer):
        """paint every lit cell of the framebuffer and show the result"""
        self.surface.fill(self.background)
        for x, y, on in framebuffer:
            if on:
                pygame.draw.rect(
                    self.surface,
                    self.foreground,
                    (x * self.scale, y * self.scale, self.scale, self.scale)
                )
        pygame.display.flip()

class Beeper:
    """continuous tone played while the sound timer is running"""
    def __init__(self, frequency=BEEP_FREQUENCY):
        pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=1)
        self.sound = pygame.mixer.Sound(buffer=square_wave(frequency))
        self.playing = False

    def update(self, active):
        if active and not self.playing:
            self.sound.play(loops=-1)
        elif not active and self.playing:
            self.sound.stop()
        self.playing = active

    def close(self):
        self.sound.stop()
        pygame.mixer.quit()

def handle_events(state, events):
    """apply pygame input events to the keypad and the run mode"""
    for event in events:
        if event.type == QUIT:
            state.quit()
        elif event.type == KEYDOWN:
            if event.key == K_ESCAPE:
                state.quit()
            elif event.key == K_SPACE:
                state.toggle_pause()
            elif event.key in KEY_MAPPINGS:
                state.keypad.press(KEY_MAPPINGS[event.key])
        elif event.type == KEYUP:
            if event.key in KEY_MAPPINGS:
                state.keypad.release(KEY_MAPPINGS[event.key])
        if state.mode is RunMode.QUIT:
            return


# ******************** ENTRY POINT SECTION
def main(argv=None):
    args = get_args(argv)
    # the rom is validated before any machine exists
    try:
        rom = read_rom(args.file)
    except RomError as e:
        sys.exit(str(e))
    # pygame initialization
    pygame.init()
    clock = pygame.time.Clock()
    # IO
    try:
        screen = Screen(s=args.scale)
        pygame.display.set_caption(os.path.basename(args.file))
    except pygame.error as e:
        pygame.quit()
        sys.exit(f"Could not open the display: {e}")
    try:
        beeper = None if args.mute else Beeper()
    except pygame.error as e:
        pygame.quit()
        sys.exit(f"Could not initialize the audio device: {e} (use --mute to run without sound)")
    # CPU
    state = Chip8State()
    state.load_rom(rom)
    cpu = Cpu(random.Random(args.seed))
    driver = CycleDriver(cpu, args.ipf)
    # emulation loop
    try:
        while state.mode is not RunMode.QUIT:
            clock.tick(args.fps)     # sleep for the remainder of the frame
            handle_events(state, pygame.event.get())
            active = driver.run_frame(state, screen.render)
            if beeper:
                beeper.update(active)
    except Chip8Error as e:
        sys.exit(f"********** THE EMULATOR CRASHED ({e}) WITH THE FOLLOWING STATE\n{state}")
    finally:
        if beeper:
            beeper.close()
        pygame.quit()
    if DEBUG: print(f"{driver.frames} frames emulated")


if __name__ == "__main__":
    main()
