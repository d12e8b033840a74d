from netshell.variables.value import Value, ValueKind, NULL
from netshell.variables.store import VariableStore

__all__ = ["Value", "ValueKind", "NULL", "VariableStore"]
