"""HTTP routes for the chat relay.

Each module exposes an APIRouter that groqbot/main.py mounts under /api:
- chat: streaming chat completions relay
- models: available model listing with static fallback
- config: client bootstrap values (default model, server-side key flag)
"""

from groqbot.api import chat, config, models

__all__ = ["chat", "config", "models"]
