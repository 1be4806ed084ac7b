"""Wire base model and tool descriptors.

Shared by the agent schemas and the tool catalog; imports nothing else
from the project.
"""

from typing import List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============== Base ==============

class AgentModel(BaseModel):
    """Base for everything that crosses the agent boundary.

    Fields are snake_case in Python and camelCase on the wire.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for a remote agent call; unset top-level options are left out."""
        data = self.model_dump(mode="json", by_alias=True)
        return {key: value for key, value in data.items() if value is not None}


# ============== Tool Models ==============

class ToolInputSchema(AgentModel):
    """JSON schema describing a tool's arguments."""
    type: str = "object"
    properties: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


class ToolDescriptor(AgentModel):
    """A callable tool as published by the tool catalog."""
    name: str
    description: str = ""
    server_id: str = Field(default="", description="Which server provides this tool")
    input_schema: ToolInputSchema = Field(default_factory=ToolInputSchema)

    def to_function_tool(self) -> Dict[str, Any]:
        """Convert to the function-tool format the executors expect."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema.model_dump(mode="json"),
            },
        }


