# CHIP-8 TIMERS
# delay and sound timers count down to zero at 60Hz, the buzzer sounds while ST is non-zero


TIMER_FREQ = 60     # ticks per second


def tick(state):
    """called once per frame, decrement both timers without going below zero"""
    if state.dt > 0:
        state.dt -= 1
    if state.st > 0:
        state.st -= 1

def sound_active(state):
    return state.st > 0
