# CHIP-8 INSTRUCTION SET
# https://github.com/mattmikolay/chip-8/wiki/CHIP%E2%80%908-Instruction-Set
#
# every instruction word is classified into exactly one Op before being executed


from enum import Enum
from typing import NamedTuple


class Op(Enum):
    SYS = 0x0000            # 0NNN  machine code routine, ignored
    CLS = 0x00E0            # 00E0
    RET = 0x00EE            # 00EE
    JP = 0x1000             # 1NNN
    CALL = 0x2000           # 2NNN
    SE_BYTE = 0x3000        # 3XNN
    SNE_BYTE = 0x4000       # 4XNN
    SE_REG = 0x5000         # 5XY0
    LD_BYTE = 0x6000        # 6XNN
    ADD_BYTE = 0x7000       # 7XNN
    LD_REG = 0x8000         # 8XY0
    OR = 0x8001             # 8XY1
    AND = 0x8002            # 8XY2
    XOR = 0x8003            # 8XY3
    ADD_REG = 0x8004        # 8XY4
    SUB = 0x8005            # 8XY5
    SHR = 0x8006            # 8XY6
    SUBN = 0x8007           # 8XY7
    SHL = 0x800E            # 8XYE
    SNE_REG = 0x9000        # 9XY0
    LD_I = 0xA000           # ANNN
    JP_V0 = 0xB000          # BNNN
    RND = 0xC000            # CXNN
    DRW = 0xD000            # DXYN
    SKP = 0xE09E            # EX9E
    SKNP = 0xE0A1           # EXA1
    LD_VX_DT = 0xF007       # FX07
    LD_VX_K = 0xF00A        # FX0A
    LD_DT_VX = 0xF015       # FX15
    LD_ST_VX = 0xF018       # FX18
    ADD_I = 0xF01E          # FX1E
    LD_F = 0xF029           # FX29
    LD_B = 0xF033           # FX33
    LD_I_VX = 0xF055        # FX55
    LD_VX_I = 0xF065        # FX65
    UNKNOWN = -1


# WATCH OUT: masks order is important!!!
# the first mask whose masked opcode is a known pattern wins
MASKS = (
    (0xFFFF, {Op.CLS.value, Op.RET.value}),
    (0xF0FF, {Op.SKP.value, Op.SKNP.value, Op.LD_VX_DT.value, Op.LD_VX_K.value, Op.LD_DT_VX.value,
              Op.LD_ST_VX.value, Op.ADD_I.value, Op.LD_F.value, Op.LD_B.value, Op.LD_I_VX.value,
              Op.LD_VX_I.value}),
    (0xF00F, {Op.LD_REG.value, Op.OR.value, Op.AND.value, Op.XOR.value, Op.ADD_REG.value,
              Op.SUB.value, Op.SHR.value, Op.SUBN.value, Op.SHL.value}),
    (0xF000, {Op.SYS.value, Op.JP.value, Op.CALL.value, Op.SE_BYTE.value, Op.SNE_BYTE.value,
              Op.SE_REG.value, Op.LD_BYTE.value, Op.ADD_BYTE.value, Op.SNE_REG.value, Op.LD_I.value,
              Op.JP_V0.value, Op.RND.value, Op.DRW.value}),
)


class Instruction(NamedTuple):
    op: Op
    opcode: int
    x: int      # second nibble, register index
    y: int      # third nibble, register index
    n: int      # lowest nibble
    nn: int     # lowest byte
    nnn: int    # lowest 12 bits, address


def classify(opcode: int) -> Op:
    for mask, patterns in MASKS:
        if (opcode & mask) in patterns:
            return Op(opcode & mask)
    return Op.UNKNOWN

def decode(opcode: int) -> Instruction:
    """split a 16 bit instruction word into its operation kind and operand fields"""
    opcode &= 0xFFFF
    return Instruction(
        op=classify(opcode),
        opcode=opcode,
        x=(opcode & 0x0F00) >> 8,
        y=(opcode & 0x00F0) >> 4,
        n=opcode & 0x000F,
        nn=opcode & 0x00FF,
        nnn=opcode & 0x0FFF,
    )
