"""Host connection details shared across layers."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class HostSpec(BaseModel):
    """SSH parameters for one managed host."""

    host: str = Field(description="Unique name used by topology files")
    hostname: str = Field(description="IP address or DNS name to connect to")
    user: str = Field(default="root", description="SSH user")
    ssh_port: int = Field(default=22, gt=0, description="SSH port")
    private_key_file: Optional[str] = Field(
        default="~/.ssh/id_rsa", description="Private key used when agent forwarding is off"
    )
    forward_agent: bool = Field(default=False, description="Use the local SSH agent")
    become_user: str = Field(default="", description="Escalate to this user for commands")
    become_method: str = Field(default="sudo", description="Privilege escalation command")
    become_flags: str = Field(default="-iu", description="Flags passed to the become method")
    envs: List[str] = Field(default_factory=list, description="KEY=VALUE pairs exported for playbooks")
    labels: List[str] = Field(default_factory=list, description="Free-form labels for host selection")

    @model_validator(mode="after")
    def validate_names(self) -> "HostSpec":
        if not self.host or not self.host.strip():
            raise ValueError("HostSpec: 'host' must be non-empty")
        if not self.hostname or not self.hostname.strip():
            raise ValueError(f"HostSpec {self.host}: 'hostname' must be non-empty")
        return self

    @property
    def key_path(self) -> Optional[str]:
        if self.forward_agent or not self.private_key_file:
            return None
        return str(Path(self.private_key_file).expanduser())

    def become_prefix(self) -> str:
        """Return the escalation prefix, or an empty string."""
        if not self.become_user:
            return ""
        return " ".join(
            part for part in (self.become_method, self.become_flags, self.become_user) if part
        )

    def has_labels(self, labels: List[str]) -> bool:
        """True when every requested label is attached to the host."""
        return all(label in self.labels for label in labels)
