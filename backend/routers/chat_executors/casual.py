"""
Charla Chat Executors - Casual

Small talk helpers that need no identity.
"""

import random
from typing import Any, Dict

from errors import handle_async_tool_errors

JOKES = (
    "¿Por qué los programadores prefieren el modo oscuro? Porque la luz atrae bugs.",
    "Hay 10 tipos de personas: las que entienden binario y las que no.",
    "Te contaría un chiste sobre UDP, pero puede que no lo recibas.",
)


@handle_async_tool_errors("tellJoke")
async def execute_tell_joke() -> Dict[str, Any]:
    return {"success": True, "joke": random.choice(JOKES)}
