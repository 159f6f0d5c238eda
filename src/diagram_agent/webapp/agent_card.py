"""The static A2A capability discovery document ("agent card")."""

from typing import Any, Dict

from ..config import Settings

AGENT_NAME = "AI Draw.io Agent"
AGENT_VERSION = "1.0.0"


def build_agent_card(settings: Settings) -> Dict[str, Any]:
    return {
        "name": AGENT_NAME,
        "description": "An AI-powered diagram generation agent",
        "url": settings.public_base_url,
        "version": AGENT_VERSION,
        "capabilities": {
            # Results are polled with tasks/get.
            "streaming": False,
            "pushNotifications": False,
            "stateTransitionHistory": True,
        },
        "skills": [
            {
                "id": "generate-diagram",
                "name": "Generate Diagram",
                "description": "Generate a draw.io diagram from a text description",
            },
        ],
        "defaultInputModes": ["text"],
        "defaultOutputModes": ["text", "data"],
    }
