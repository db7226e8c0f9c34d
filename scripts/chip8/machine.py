# CHIP-8 MACHINE STATE
# registers, memory, stack, framebuffer, keypad and timers of a single session
#
# MEMORY MAP
# 0x000-0x04F   unused
# 0x050-0x09F   font glyphs (16 hex digits, 5 bytes each)
# 0x200-0xFFF   program image


import os
from enum import Enum, auto


# ******************** STATIC SECTION
C8_FONTS = [0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
            0x20, 0x60, 0x20, 0x20, 0x70,  # 1
            0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
            0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
            0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
            0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
            0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
            0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
            0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
            0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
            0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
            0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
            0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
            0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
            0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
            0xF0, 0x80, 0xF0, 0x80, 0x80]  # F

MEMORY_SIZE = 4096
ADDRESS_MASK = 0xFFF
FONT_START_ADDRESS = 0x50
FONT_END_ADDRESS = FONT_START_ADDRESS + len(C8_FONTS)
FONT_HEIGHT = 5
ROM_START_ADDRESS = 0x200
ROM_END_ADDRESS = 0xFFF
MAX_ROM_SIZE = ROM_END_ADDRESS - ROM_START_ADDRESS     # 3583 bytes
STACK_SIZE = 16
REGISTERS_COUNT = 16
KEYS_COUNT = 16
FLAG = 0xF                                              # VF doubles as carry/borrow/collision flag
SCREEN_HEIGHT = 32
SCREEN_WIDTH = 64
DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False


# ******************** ERRORS SECTION
class Chip8Error(Exception):
    """base class of every error raised by the virtual machine"""

class RomError(Chip8Error):
    pass

class StackError(Chip8Error, IndexError):
    pass

class StackOverflow(StackError):
    pass

class StackUnderflow(StackError):
    pass


# ******************** I/O SECTION
class Framebuffer:
    """64x32 monochrome grid stored row-major, cell (x, y) lives at index w*y + x"""
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT):
        self.w, self.h = w, h
        self.buffer = [False] * h * w

    def __getitem__(self, coords):
        x, y = coords
        return self.buffer[self.w * y + x]

    def __iter__(self):
        """yield (x, y, on) for every cell, row by row"""
        for i, on in enumerate(self.buffer):
            yield i % self.w, i // self.w, on

    def clear(self):
        self.buffer = [False] * self.h * self.w

    def xor(self, x, y, bit):
        """
        XOR a sprite bit onto the cell at (x, y), coordinates wrap around the screen edges
        return True when a lit cell gets switched off (collision)
        """
        i = self.w * (y % self.h) + (x % self.w)
        collided = self.buffer[i] and bool(bit)
        self.buffer[i] = self.buffer[i] != bool(bit)
        return collided

class Keypad:
    """16 hex keys, written only by the input handler of the host"""
    def __init__(self):
        self.keys = [False] * KEYS_COUNT

    def __getitem__(self, key):
        return self.keys[key & 0xF]

    def __setitem__(self, key, value):
        self.keys[key & 0xF] = bool(value)

    def press(self, key):
        self[key] = True

    def release(self, key):
        self[key] = False

    def first(self):
        """get the lowest key currently held down, None if there is none"""
        for key, pressed in enumerate(self.keys):
            if pressed:
                return key
        return None


# ******************** MEMORY SECTION
# ********** FIXED SIZE STACK OF 16 RETURN ADDRESSES
class Stack:
    def __init__(self):
        self.slots = [0] * STACK_SIZE
        self.sp = 0

    def __len__(self):
        return self.sp

    def __str__(self):
        return f"{[hex(a) for a in self.slots[:self.sp]]} (sp={self.sp})"

    def append(self, address):
        if self.sp >= STACK_SIZE:
            raise StackOverflow(f"The CHIP-8 stack can contain at most {STACK_SIZE} addresses. Limit exceeded")
        self.slots[self.sp] = address
        self.sp += 1

    def pop(self):
        if self.sp == 0:
            raise StackUnderflow("Return with an empty CHIP-8 stack")
        self.sp -= 1
        return self.slots[self.sp]

# ********** 4KB MAIN MEMORY, EVERY ADDRESS IS WRAPPED TO 12 BITS
class Memory:
    def __init__(self):
        self.inner = bytearray(MEMORY_SIZE)
        self.inner[FONT_START_ADDRESS:FONT_END_ADDRESS] = bytes(C8_FONTS)

    def __setitem__(self, key, value):
        self.inner[key & ADDRESS_MASK] = value & 0xFF

    def __getitem__(self, index):
        return self.inner[index & ADDRESS_MASK]

    def word(self, address):
        """big-endian 16 bit word starting at address"""
        return self[address] << 8 | self[address + 1]

    def load_rom(self, rom):
        if len(rom) > MAX_ROM_SIZE:
            raise RomError(f"ROM is {len(rom)} bytes long, at most {MAX_ROM_SIZE} bytes fit in memory")
        self.inner[ROM_START_ADDRESS:ROM_START_ADDRESS+len(rom)] = rom

def read_rom(path):
    """read a ROM image from disk, raise RomError if it can't be used"""
    try:
        with open(path, mode='rb') as f:
            rom = f.read()
    except OSError as e:
        raise RomError(f"Unable to open ROM at path {path}: {e.strerror}") from e
    if len(rom) == 0:
        raise RomError(f"The ROM at path {path} is empty")
    if len(rom) > MAX_ROM_SIZE:
        raise RomError(f"The ROM at path {path} is too large ({len(rom)} > {MAX_ROM_SIZE} bytes)")
    return rom


# ******************** STATE SECTION
class RunMode(Enum):
    RUNNING = auto()
    PAUSED = auto()
    QUIT = auto()

class Chip8State:
    """the whole machine, mutated only by the cpu and the timers"""
    def __init__(self):
        self.reset()

    def reset(self):
        self.mem = Memory()
        self.stack = Stack()
        self.v = [0] * REGISTERS_COUNT
        self.pc = ROM_START_ADDRESS
        self.idx = 0        # specify where the sprites reside in memory
        self.opcode = 0     # last fetched instruction
        self.dt = 0         # delay timer, active when non-zero
        self.st = 0         # sound timer, active when non-zero
        self.display = Framebuffer()
        self.keypad = Keypad()
        self.mode = RunMode.RUNNING
        self.draw = False

    def __str__(self):
        registers = f"PC_REGISTER:0x{self.pc:03x} | IDX_REGISTER:0x{self.idx:03x} | VARIABLE_REGISTERS:{self.v}"
        timers = f"DT:{self.dt} | ST:{self.st}"
        stack = f"STACK:{self.stack}"
        flags = f"OPCODE:0x{self.opcode:04x} | DRAW:{self.draw} | MODE:{self.mode.name}"
        return f"{registers}\n{timers}\n{stack}\n{flags}"

    def load_rom(self, rom):
        self.mem.load_rom(rom)
        if DEBUG: print(f"{len(rom)} bytes of ROM loaded at 0x{ROM_START_ADDRESS:03x}")

    def toggle_pause(self):
        if self.mode is RunMode.RUNNING:
            self.mode = RunMode.PAUSED
        elif self.mode is RunMode.PAUSED:
            self.mode = RunMode.RUNNING

    def quit(self):
        self.mode = RunMode.QUIT
