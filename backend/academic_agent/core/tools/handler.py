"""
Tool handler base class

Concrete tools subclass BaseToolHandler, declare a pydantic input model and implement
``execute``. The registry owns validation and error conversion, so ``execute`` may raise.
"""

from abc import ABC, abstractmethod
from typing import Any, Type

from pydantic import BaseModel

from .base import ToolDefinition


class BaseToolHandler(ABC):
    """Tool handler base class"""

    description: str = ""
    category: str = "general"
    input_model: Type[BaseModel]

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name as exposed to the model"""
        pass

    @abstractmethod
    async def execute(self, parameters: Any) -> Any:
        """Run the tool

        Args:
            parameters: instance of ``input_model`` built from the model's arguments

        Returns:
            JSON-serialisable result

        Raises:
            Exception: any failure; the registry turns it into an error outcome
        """
        pass

    def get_definition(self) -> ToolDefinition:
        """Build the immutable registry entry for this handler"""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_model=self.input_model,
            handler=self.execute,
            category=self.category,
        )
