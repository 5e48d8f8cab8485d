"""Built-in desired-state definitions used when no file or remote source resolves.

Records follow the default ``authorized-type`` schema.
"""

from typing import Any, Dict, List

_WORKFLOW_V3 = "System.Workflow.Activities, Version=3.0.0.0, Culture=neutral, PublicKeyToken=31bf3856ad364e35"
_WORKFLOW_COMPONENT_V3 = (
    "System.Workflow.ComponentModel, Version=3.0.0.0, Culture=neutral, PublicKeyToken=31bf3856ad364e35"
)
_MSCORLIB = "mscorlib, Version=2.0.0.0, Culture=neutral, PublicKeyToken=b77a5c561934e089"
_SYSTEM = "System, Version=2.0.0.0, Culture=neutral, PublicKeyToken=b77a5c561934e089"

BUILTIN_SETS: Dict[str, Dict[str, Any]] = {
    "workflow-foundation": {
        "name": "workflow-foundation",
        "description": "Baseline workflow activity and runtime types every web server must authorize",
        "records": [
            {"Assembly": _WORKFLOW_V3, "Namespace": "System.Workflow.*", "TypeName": "*", "Authorized": "True"},
            {"Assembly": _WORKFLOW_COMPONENT_V3, "Namespace": "System.Workflow.*", "TypeName": "*", "Authorized": "True"},
            {"Assembly": _MSCORLIB, "Namespace": "System", "TypeName": "Guid", "Authorized": "True"},
            {"Assembly": _MSCORLIB, "Namespace": "System", "TypeName": "DateTime", "Authorized": "True"},
            {"Assembly": _MSCORLIB, "Namespace": "System", "TypeName": "Boolean", "Authorized": "True"},
            {"Assembly": _MSCORLIB, "Namespace": "System", "TypeName": "Int32", "Authorized": "True"},
            {"Assembly": _MSCORLIB, "Namespace": "System", "TypeName": "String", "Authorized": "True"},
            {"Assembly": _MSCORLIB, "Namespace": "System.Collections", "TypeName": "Hashtable", "Authorized": "True"},
        ],
    },
    "workflow-codedom-lockdown": {
        "name": "workflow-codedom-lockdown",
        "description": "Explicit deny entries for code-generation types used in workflow injection",
        "records": [
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodeBinaryOperatorExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodePrimitiveExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodeMethodInvokeExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodeMethodReferenceExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodeFieldReferenceExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodeTypeReferenceExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodeThisReferenceExpression", "Authorized": "False"},
            {"Assembly": _SYSTEM, "Namespace": "System.CodeDom", "TypeName": "CodePropertyReferenceExpression", "Authorized": "False"},
        ],
    },
}


def builtin_set_names() -> List[str]:
    """Names of the built-in desired sets, sorted."""
    return sorted(BUILTIN_SETS)


def find_builtin(set_name: str) -> Dict[str, Any]:
    """Look up a built-in definition case-insensitively; returns {} when unknown."""
    for name, definition in BUILTIN_SETS.items():
        if name.casefold() == set_name.casefold():
            return definition
    return {}
