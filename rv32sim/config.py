"""
RV32 Stepper — Machine Configuration
====================================

Fixed machine dimensions. These match the reference configuration the
stepper was built against; the data memory size can be overridden per
emulator instance (see Emulator(memory_size=...)) and from the CLI.
"""

# =============================================================================
#  WORD / REGISTER GEOMETRY
# =============================================================================
XLEN = 32                  # register and instruction width in bits
WORD_MASK = 0xFFFFFFFF
SIGN_BIT = 0x80000000
NUM_REGISTERS = 32         # x0..x31, x0 is NOT hardwired to zero
WORD_SIZE = 4              # PC advances by this after every step


# =============================================================================
#  DATA MEMORY
# =============================================================================
MEMORY_SIZE = 1024         # word cells, indexed directly by address


# =============================================================================
#  AUTO-RUN
# =============================================================================
STOP_JOIN_TIMEOUT = 5.0    # seconds stop() waits for the worker by default


# =============================================================================
#  LOGGING
# =============================================================================
LOGGER_NAME = "rv32sim"
LOG_FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
