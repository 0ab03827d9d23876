import os
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")
KNOWLEDGE_DIR = os.environ.get("COMPANION_KNOWLEDGE_DIR") or os.path.join(DATA_DIR, "knowledge")
CLIENT_STATE_DIR = os.path.join(DATA_DIR, "client_state")

PROMPTS_DIR = os.path.join(BASE_DIR, "prompts")
DEFAULT_SYSTEM_PROMPT_PATH = os.path.join(PROMPTS_DIR, "companion_system_prompt.md")
