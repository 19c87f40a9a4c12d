from enum import Enum


class RelayApiVersion(Enum):
    V3 = 3

    @classmethod
    def from_value(cls, value):
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Unsupported relay API version: {value}")

    def method_prefix(self) -> str:
        return f"/v{self.value}/metaTx"
