################################################################################################################################
# Constants for Servoterm Application
################################################################################################################################
import logging
################################################################################################################################
# Constants General
VERSION                 = "0.2.0"                # this version
APPLICATION_NAME        = "Servoterm"            #
################################################################################################################################
# Debug and Profiling
PROFILEME               = False                  # enable/disable profiling (measure execution time of functions)
DEBUGSERIAL             = False                  # enable/disable low level serial debugging
DEBUGCHART              = False                  # enable/disable chart debugging
DEBUGDEMUX              = False                  # enable/disable per chunk demultiplexer debugging
################################################################################################################################
# Constants Scope Protocol
#
# Frame layout: MARKER | KIND | LEN | PAYLOAD[LEN]
#   MARKER  1 byte, starts every frame, anything else on the link is console text
#   KIND    1 byte, sample or reset
#   LEN     1 byte, unsigned payload length 0..255
#   PAYLOAD CHANNEL_COUNT samples for a sample frame, empty for a reset frame
SCOPE_MARKER            = 0xFF                   # frame start marker
SCOPE_KIND_SAMPLE       = 0x01                   # frame kind: oscilloscope samples
SCOPE_KIND_RESET        = 0x02                   # frame kind: reset of rolling index
SCOPE_HEADER_SIZE       = 2                      # KIND and LEN bytes following the marker
SCOPE_MAX_PAYLOAD       = 255                    # largest length a one byte LEN field can declare
SCOPE_CHANNEL_COUNT     = 8                      # values per sample packet
SCOPE_SAMPLE_FORMAT     = "f"                    # struct format of one sample: "e" float16, "f" float32, "d" float64
SCOPE_BYTE_ORDER        = "<"                    # little endian, byte order of the drive's MCU
################################################################################################################################
# Constants Chart
SAMPLE_WINDOW_LENGTH    = 200                    # samples shown in the rolling oscilloscope view
UPDATE_INTERVAL         = 40                     # [ms] 25 Hz plot update, visualization does not improve with higher rate
Y_RANGE                 = (-1.0, 1.0)            # vertical range of the oscilloscope
LINEWIDTH               = 2
CURSOR_COLOR            = "#b22222"              # FireBrick, rolling cursor where new data overwrites old
CHART_BACKGROUND_COLOR  = "#ffffff"
COLORS = [                                       # one color per channel, sweet16 palette
    "#1a1c2c", "#5d275d", "#b13e53", "#ef7d57",
    "#ffcd75", "#a7f070", "#38b764", "#257179",
    "#29366f", "#3b5dc9", "#41a6f6", "#73eff7",
    "#94b0c2", "#566c86", "#333c57", "#f4f4f4",
]
MAX_CHANNELS            = len(COLORS)            # maximum number of traces [available colors]
################################################################################################################################
# Constants Text Display
ENCODING                = "latin-1"              # narrow 8 bit encoding of the console text
STATUS_COLOR            = "FireBrick"            # color of connected/disconnected messages
MAX_TEXT_LINES          = 5_000                  # max number of blocks kept in the text log
BACKGROUNDCOLOR_LOG     = "#f0f0f0"
################################################################################################################################
# Constants Serial
DEFAULT_BAUDRATE        = 115_200                # the drive enumerates as USB CDC, baud rate is nominal
SERIAL_BUFFER_SIZE      = 4_096                  # [bytes] size of the serial device buffer, has no effect on Linux and Darwin
THROUGHPUT_INTERVAL     = 1_000                  # [ms] interval of the rx/tx throughput report
STMBL_USB_VENDOR_ID     = 0x0483                 #  1155 STMicroelectronics
STMBL_USB_PRODUCT_ID    = 0x5740                 # 22336 virtual COM port
STMBL_MANUFACTURER      = "STMicroelectronics"
STMBL_DESCRIPTION       = "STMBL"
LINE_TERMINATOR         = b"\n"                  # appended to every command sent to the drive
RESET_COMMANDS          = [                      # clears a latched fault on the drive
    b"fault0.en = 0\n",
    b"fault0.en = 1\n",
]
###############################################################################################################################
# Constants LOGLEVEL
# logging level and priority
# CRITICAL  50
# ERROR     40
# WARNING   30
# INFO      20
# DEBUG     10
# NOTSET     0
DEBUG_LEVEL             = logging.INFO
