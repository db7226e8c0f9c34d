# CHIP-8 CPU
# fetch, decode and execute one instruction at a time on an explicitly passed machine state
#
# COMPATIBILITY QUIRKS TABLE
# https://games.gulrak.net/cadmium/chip8-opcode-table.html#quirk6
#
# quirks followed by this cpu:
#   - 8XY1/8XY2/8XY3 leave VF untouched
#   - 8XY6/8XYE shift VX in place, VY is ignored
#   - FX55/FX65 leave I untouched
#   - BNNN jumps to NNN + V0


import random
from enum import Enum, auto
from functools import wraps
from typing import NamedTuple

from machine import DEBUG, FLAG, FONT_HEIGHT, FONT_START_ADDRESS, ADDRESS_MASK
from opcodes import Instruction, Op, decode


# ******************** UTILITIES SECTION
def asm(msg):
    """decorator to print out the ASM of the instruction being called"""
    def decorator(fn):
        @wraps(fn)
        def wrapper_fn(self, state, ins):
            mem_addr = (state.pc - 0x2) & ADDRESS_MASK   # pc already points to the next instruction
            vals = fn(self, state, ins)             # use the locals() values of each decorated function in the print
            if DEBUG:
                vals.update(mem_addr=mem_addr, x=ins.x, y=ins.y, n=ins.n, nn=ins.nn, nnn=ins.nnn)
                print(msg.format(**vals))
        return wrapper_fn
    return decorator


class Status(Enum):
    EXECUTED = auto()
    AWAITING_KEY = auto()   # LD Vx, K found no key down, the same instruction runs again next step


class StepResult(NamedTuple):
    instruction: Instruction
    status: Status


# ******************** CPU SECTION
class Cpu:
    def __init__(self, rng=None):
        self.rng = rng if rng is not None else random.Random()
        self.instructions = {
            Op.SYS: self._sys,
            Op.CLS: self._clear_screen,
            Op.RET: self._return,
            Op.JP: self._jump,
            Op.CALL: self._call_addr,
            Op.SE_BYTE: self._skip_if_eq,
            Op.SNE_BYTE: self._skip_if_not_eq,
            Op.SE_REG: self._skip_if_eq_regs,
            Op.LD_BYTE: self._set_vx,
            Op.ADD_BYTE: self._add_to_vx,
            Op.LD_REG: self._set_vx_to_vy,
            Op.OR: self._set_vx_or_vy,
            Op.AND: self._set_vx_and_vy,
            Op.XOR: self._set_vx_xor_vy,
            Op.ADD_REG: self._add_vx_vy,
            Op.SUB: self._sub_vx_vy,
            Op.SHR: self._shr,
            Op.SUBN: self._subn_vx_vy,
            Op.SHL: self._shl,
            Op.SNE_REG: self._skip_if_not_eq_regs,
            Op.LD_I: self._set_idx,
            Op.JP_V0: self._jump_plus,
            Op.RND: self._random_byte_and,
            Op.DRW: self._to_screen,
            Op.SKP: self._skip_if_pressed,
            Op.SKNP: self._skip_if_not_pressed,
            Op.LD_VX_DT: self._set_vx_dt,
            Op.LD_VX_K: self._wait_keypress,
            Op.LD_DT_VX: self._set_dt_vx,
            Op.LD_ST_VX: self._set_st,
            Op.ADD_I: self._add_to_idx,
            Op.LD_F: self._select_char,
            Op.LD_B: self._bcd_repr,
            Op.LD_I_VX: self._store_vregs,
            Op.LD_VX_I: self._load_vregs,
            Op.UNKNOWN: self._unknown,
        }
        missing = set(Op) - set(self.instructions)
        if missing:
            raise NotImplementedError(f"No handler for {sorted(op.name for op in missing)}")

    def step(self, state):
        """execute exactly one instruction, fetched at the current pc"""
        # fetch (each instruction is two bytes long)
        address = state.pc
        state.opcode = state.mem.word(address)
        self._goto_next_instruction(state)
        # decode + execute
        ins = decode(state.opcode)
        self.instructions[ins.op](state, ins)
        if ins.op is Op.LD_VX_K and state.pc == address:
            return StepResult(ins, Status.AWAITING_KEY)
        return StepResult(ins, Status.EXECUTED)

    @staticmethod
    def _goto_next_instruction(state):
        state.pc = (state.pc + 0x2) & ADDRESS_MASK

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SYS 0x{nnn:03x} (ignored)")
    def _sys(self, state, ins):
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ??? 0x{opcode:04x} (ignored)")
    def _unknown(self, state, ins):
        opcode = ins.opcode
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CLS")
    def _clear_screen(self, state, ins):
        state.display.clear()
        state.draw = True
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RET")
    def _return(self, state, ins):
        """return from a subroutine"""
        state.pc = state.stack.pop()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP 0x{nnn:03x}")
    def _jump(self, state, ins):
        state.pc = ins.nnn
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CALL 0x{nnn:03x}")
    def _call_addr(self, state, ins):
        state.stack.append(state.pc)
        state.pc = ins.nnn
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x}, {nn}")
    def _skip_if_eq(self, state, ins):
        if state.v[ins.x] == ins.nn:
            self._goto_next_instruction(state)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x}, {nn}")
    def _skip_if_not_eq(self, state, ins):
        if state.v[ins.x] != ins.nn:
            self._goto_next_instruction(state)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x}, V{y}")
    def _skip_if_eq_regs(self, state, ins):
        if state.v[ins.x] == state.v[ins.y]:
            self._goto_next_instruction(state)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x}, V{y}")
    def _skip_if_not_eq_regs(self, state, ins):
        if state.v[ins.x] != state.v[ins.y]:
            self._goto_next_instruction(state)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, {nn}")
    def _set_vx(self, state, ins):
        """set the value of one of the 16 variable registers, Vx"""
        state.v[ins.x] = ins.nn
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x}, {nn}")
    def _add_to_vx(self, state, ins):
        """add to the value already present in one of the variable registers, VF is not affected"""
        state.v[ins.x] = (state.v[ins.x] + ins.nn) & 0xFF    # keep only the lowest 8 bits
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, V{y}")
    def _set_vx_to_vy(self, state, ins):
        """set the value of Vx equal to that of Vy"""
        state.v[ins.x] = state.v[ins.y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: OR V{x}, V{y}")
    def _set_vx_or_vy(self, state, ins):
        state.v[ins.x] |= state.v[ins.y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: AND V{x}, V{y}")
    def _set_vx_and_vy(self, state, ins):
        state.v[ins.x] &= state.v[ins.y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: XOR V{x}, V{y}")
    def _set_vx_xor_vy(self, state, ins):
        state.v[ins.x] ^= state.v[ins.y]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x}, V{y}")
    def _add_vx_vy(self, state, ins):
        """set Vx = Vx + Vy, VF = carry"""
        total = state.v[ins.x] + state.v[ins.y]
        state.v[FLAG] = 1 if total > 0xFF else 0
        state.v[ins.x] = total & 0xFF
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUB V{x}, V{y}")
    def _sub_vx_vy(self, state, ins):
        """set Vx = Vx - Vy, VF = NOT borrow"""
        vx, vy = state.v[ins.x], state.v[ins.y]
        state.v[FLAG] = 1 if vx >= vy else 0
        state.v[ins.x] = (vx - vy) & 0xFF
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUBN V{x}, V{y}")
    def _subn_vx_vy(self, state, ins):
        """set Vx = Vy - Vx, VF = NOT borrow"""
        vx, vy = state.v[ins.x], state.v[ins.y]
        state.v[FLAG] = 1 if vy >= vx else 0
        state.v[ins.x] = (vy - vx) & 0xFF
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SHR V{x}")
    def _shr(self, state, ins):
        """set Vx = Vx SHR 1, VF = bit shifted out"""
        vx = state.v[ins.x]
        state.v[FLAG] = vx & 0x1
        state.v[ins.x] = vx >> 1
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SHL V{x}")
    def _shl(self, state, ins):
        """set Vx = Vx SHL 1, VF = bit shifted out"""
        vx = state.v[ins.x]
        state.v[FLAG] = (vx & 0x80) >> 7
        state.v[ins.x] = (vx << 1) & 0xFF
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD I, 0x{nnn:03x}")
    def _set_idx(self, state, ins):
        state.idx = ins.nnn
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP V0, 0x{nnn:03x}")
    def _jump_plus(self, state, ins):
        state.pc = (ins.nnn + state.v[0x0]) & ADDRESS_MASK
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RND V{x}, 0x{nn:02x}")
    def _random_byte_and(self, state, ins):
        rnd = self.rng.randint(0, 0xFF)
        state.v[ins.x] = rnd & ins.nn
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: DRW V{x}, V{y}, {n}")
    def _to_screen(self, state, ins):
        """display n-byte sprite starting at memory location I at (Vx, Vy), set VF = collision"""
        x, y = state.v[ins.x], state.v[ins.y]
        collision = False
        # step through each sprite byte, one screen row per byte
        for row in range(ins.n):
            sprite_byte = state.mem[state.idx + row]
            for col in range(8):
                bit = (sprite_byte >> (7 - col)) & 0x1      # most significant bit is the leftmost pixel
                # sprites are XORed onto the existing screen and if this
                # causes any pixel to be erased then VF=1, otherwise VF=0
                if state.display.xor(x + col, y + row, bit):
                    collision = True
        state.v[FLAG] = 1 if collision else 0
        state.draw = True
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKP V{x}")
    def _skip_if_pressed(self, state, ins):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        if state.keypad[state.v[ins.x]]:
            self._goto_next_instruction(state)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKNP V{x}")
    def _skip_if_not_pressed(self, state, ins):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        if not state.keypad[state.v[ins.x]]:
            self._goto_next_instruction(state)
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, DT")
    def _set_vx_dt(self, state, ins):
        state.v[ins.x] = state.dt
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, K")
    def _wait_keypress(self, state, ins):
        """wait for a key press and store its value in Vx"""
        key = state.keypad.first()
        if key is None:
            state.pc = (state.pc - 0x2) & ADDRESS_MASK     # stay on the same instruction until a key is pressed
        else:
            state.v[ins.x] = key
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD DT, V{x}")
    def _set_dt_vx(self, state, ins):
        state.dt = state.v[ins.x]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD ST, V{x}")
    def _set_st(self, state, ins):
        state.st = state.v[ins.x]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD I, V{x}")
    def _add_to_idx(self, state, ins):
        """set I = I + Vx, no overflow flag"""
        state.idx = (state.idx + state.v[ins.x]) & 0xFFFF
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD F, V{x}")
    def _select_char(self, state, ins):
        """set I to location of sprite for digit Vx"""
        state.idx = FONT_START_ADDRESS + (state.v[ins.x] & 0xF) * FONT_HEIGHT
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD B, V{x}")
    def _bcd_repr(self, state, ins):
        """store the hundreds digit of Vx in memory at I, the tens digit at I+1, the ones digit at I+2"""
        value = state.v[ins.x]
        hundreds, tens, ones = value // 100, (value // 10) % 10, value % 10
        state.mem[state.idx], state.mem[state.idx+1], state.mem[state.idx+2] = hundreds, tens, ones
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD [I], V{x}")
    def _store_vregs(self, state, ins):
        """store registers V0 through Vx (included) in memory starting at location I"""
        for i in range(ins.x + 1):
            state.mem[state.idx + i] = state.v[i]
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x}, [I]")
    def _load_vregs(self, state, ins):
        """read registers V0 through Vx (included) from memory starting at location I"""
        for i in range(ins.x + 1):
            state.v[i] = state.mem[state.idx + i]
        return locals()
