"""
Tool Registry - the tool catalogue offered to the completion service.

Each tool is a self-contained definition (name, description, JSON-schema
parameters, executor) registered once at startup. The registry produces
the OpenAI function-calling schema and is the dispatcher's lookup table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Callable, Optional
import logging

logger = logging.getLogger(__name__)


class ToolCategory(Enum):
    """Tool categories for grouping and processing."""

    SIMPLE = "simple"  # Arithmetic, jokes
    EXTERNAL = "external"  # Third-party lookups (weather)
    AUTH = "auth"  # Registration, authentication, logout
    MEMORY = "memory"  # Per-identity casual facts


@dataclass
class ToolDefinition:
    """Definition of a tool for the registry."""

    name: str
    description: str
    parameters: Dict[str, Any]
    required_params: List[str]
    executor: Callable[..., Any]
    category: ToolCategory
    # Successful calls issue a session for the returned identity
    establishes_session: bool = False
    requires_identity: bool = False

    def to_schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.parameters,
                    "required": list(self.required_params),
                },
            },
        }


class ToolRegistry:
    """
    Central registry for all Charla tools.

    Usage:
        register_all_tools()
        tools_schema = ToolRegistry.get_tools_schema()
        tool = ToolRegistry.get_tool("calculator")
    """

    _tools: Dict[str, ToolDefinition] = {}
    _initialized: bool = False

    @classmethod
    def register(cls, tool: ToolDefinition) -> None:
        """Register a tool definition."""
        cls._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    @classmethod
    def get_tool(cls, name: str) -> Optional[ToolDefinition]:
        """Get a tool definition by name."""
        return cls._tools.get(name)

    @classmethod
    def get_tools_schema(cls) -> List[Dict[str, Any]]:
        """Generate OpenAI-compatible tools schema for function calling."""
        return [tool.to_schema() for tool in cls._tools.values()]

    @classmethod
    def get_all_tools(cls) -> Dict[str, ToolDefinition]:
        """Get all registered tools."""
        return cls._tools.copy()

    @classmethod
    def get_tools_by_category(cls, category: ToolCategory) -> List[ToolDefinition]:
        """Get all tools in a category."""
        return [t for t in cls._tools.values() if t.category == category]


def _register_core_tools() -> None:
    from routers.chat_executors import (
        execute_calculator,
        execute_get_weather,
        execute_tell_joke,
        execute_save_user_info,
        execute_authenticate_user,
        execute_logout_user,
        execute_save_casual_data,
        execute_get_casual_data,
    )

    ToolRegistry.register(
        ToolDefinition(
            name="calculator",
            description=(
                "Evalúa expresiones aritméticas básicas: números, + - * / // % **, "
                "signos y paréntesis. Ejemplo: (12 + 3) * 4"
            ),
            parameters={
                "expression": {"type": "string", "description": "Expresión aritmética a evaluar"},
            },
            required_params=["expression"],
            executor=execute_calculator,
            category=ToolCategory.SIMPLE,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="getWeather",
            description="Obtiene el clima actual para una ubicación.",
            parameters={
                "location": {"type": "string", "description": "Ciudad, opcionalmente con país (ej. 'Córdoba, AR')"},
            },
            required_params=["location"],
            executor=execute_get_weather,
            category=ToolCategory.EXTERNAL,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="tellJoke",
            description="Devuelve un chiste aleatorio de programación.",
            parameters={},
            required_params=[],
            executor=execute_tell_joke,
            category=ToolCategory.SIMPLE,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="saveUserInfo",
            description="Registra un usuario con nombre y código. Si el nombre ya existe, inicia su sesión.",
            parameters={
                "name": {"type": "string", "description": "Nombre del usuario"},
                "code": {"type": "string", "description": "Código secreto elegido por el usuario"},
            },
            required_params=["name", "code"],
            executor=execute_save_user_info,
            category=ToolCategory.AUTH,
            establishes_session=True,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="authenticateUser",
            description="Autentica a un usuario usando su nombre y código.",
            parameters={
                "name": {"type": "string", "description": "Nombre del usuario"},
                "code": {"type": "string", "description": "Código secreto del usuario"},
            },
            required_params=["name", "code"],
            executor=execute_authenticate_user,
            category=ToolCategory.AUTH,
            establishes_session=True,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="logoutUser",
            description="Cierra la sesión del usuario actual.",
            parameters={},
            required_params=[],
            executor=execute_logout_user,
            category=ToolCategory.AUTH,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="saveUserCasualData",
            description=(
                "Guarda un dato personal del usuario (color favorito, alergias, familiares, objetos). "
                "La key tiene la forma ENTIDAD.ATRIBUTO, por ejemplo tio.auto_color."
            ),
            parameters={
                "key": {"type": "string", "description": "Clave ENTIDAD.ATRIBUTO"},
                "value": {"type": "string", "description": "Valor a recordar"},
            },
            required_params=["key", "value"],
            executor=execute_save_casual_data,
            category=ToolCategory.MEMORY,
            requires_identity=True,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="getUserCasualData",
            description="Obtiene un dato guardado anteriormente por su key ENTIDAD.ATRIBUTO.",
            parameters={
                "key": {"type": "string", "description": "Clave ENTIDAD.ATRIBUTO"},
            },
            required_params=["key"],
            executor=execute_get_casual_data,
            category=ToolCategory.MEMORY,
            requires_identity=True,
        )
    )


def register_all_tools() -> None:
    """Register the tool catalogue. Safe to call more than once."""
    if ToolRegistry._initialized:
        return
    _register_core_tools()
    ToolRegistry._initialized = True
    logger.info(f"Tool registry initialized with {len(ToolRegistry._tools)} tools")
