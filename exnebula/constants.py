# ExNebula hub protocol constants (numeric keys and message types)

PROTO_VERSION = 1

# Envelope keys
K_V = 0
K_T = 1
K_ID = 2
K_TS = 3
K_SRC = 4
K_BODY = 6
K_NICK = 7
K_GOAL = 8

# Message types
T_BIND = 10

T_COMMUNITY = 20

T_MENTOR_QUERY = 30
T_MENTOR_REPLY = 31

T_PATH_REQUEST = 40
T_PATH = 41

T_PING = 50
T_PONG = 51

# BIND body keys
B_BIND_NAME = 0
B_BIND_USER_ID = 1

# PATH body keys
B_PATH_TITLE = 0
B_PATH_DESCRIPTION = 1
B_PATH_MODULES = 2
B_PATH_PROGRESS = 3

# Career goals known to the template tables. Anything else falls back to
# DEFAULT_CAREER_GOAL.
CAREER_GOALS = ("AI Engineer", "Data Scientist", "ML Engineer")
DEFAULT_CAREER_GOAL = "AI Engineer"

DISPLAY_NAME_MAX_CHARS = 64
USER_ID_MAX_CHARS = 128
