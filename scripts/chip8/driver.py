# CHIP-8 CYCLE DRIVER
# run the cpu in fixed size bursts, one burst per displayed frame
# 11 instructions per frame at 60 frames per second = 660 instructions per second


import timers
from machine import RunMode
from opcodes import Op


INSTRUCTIONS_PER_FRAME = 11


class CycleDriver:
    def __init__(self, cpu, instructions_per_frame=INSTRUCTIONS_PER_FRAME):
        if instructions_per_frame < 1:
            raise ValueError("At least one instruction per frame has to be executed")
        self.cpu = cpu
        self.instructions_per_frame = instructions_per_frame
        self.frames = 0

    def burst(self, state):
        """
        execute up to instructions_per_frame instructions
        the burst ends right after a sprite is drawn so that at most one redraw happens per frame
        return the number of instructions executed
        """
        executed = 0
        for _ in range(self.instructions_per_frame):
            result = self.cpu.step(state)
            executed += 1
            if result.instruction.op is Op.DRW:
                break
        return executed

    def run_frame(self, state, present=None):
        """
        emulate one frame (cpu burst, screen refresh, timers)
        present is called with the framebuffer whenever it changed
        return True if the buzzer has to be sounding
        """
        if state.mode is RunMode.QUIT:
            return False
        if state.mode is RunMode.PAUSED:
            return False    # timers are frozen, the buzzer stays quiet
        self.burst(state)
        # refresh screen if needed
        if state.draw:
            if present is not None:
                present(state.display)
            state.draw = False
        # delay/sound timers (dt/st)
        timers.tick(state)
        self.frames += 1
        return timers.sound_active(state)
