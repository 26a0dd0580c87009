# deploykit/__init__.py
from ._version import __version__

from .actions import Action
from .api import default_dependencies, init, pipeline
from .config import Settings, load_settings
from .config_sources import DictSource, EnvSource, JsonTreeSource, TreeSource, YamlTreeSource
from .container import Container
from .controller import BaseController, register_controllers
from .descriptor import AutoRule, Dependency
from .environment import EnvExposer
from .exceptions import (
    CircularDependencyError,
    ComponentExecutionError,
    ConfigurationError,
    DeployKitError,
    ModuleLoadError,
    ResolutionError,
    StackBackendError,
    TemplateLoadError,
)
from .log import configure_logging, drain, flow_scope
from .models import (
    ComponentMetadata,
    ComponentSpec,
    PipelineArgs,
    PipelineContext,
    Result,
    StackSettings,
    Template,
    VariableMetadata,
    VarType,
)
from .pipeline import PipelineManager, PipelineState
from .processor import EnvSecretResolver, VariableProcessor
from .stack import NodeStackBridge, StackBridge, StackManager
from .template import FileTemplateSource, MemoryTemplateSource, TemplateManager, TemplateSource

__all__ = [
    "__version__",
    "Action",
    "AutoRule",
    "BaseController",
    "CircularDependencyError",
    "ComponentExecutionError",
    "ComponentMetadata",
    "ComponentSpec",
    "ConfigurationError",
    "Container",
    "Dependency",
    "DeployKitError",
    "DictSource",
    "EnvExposer",
    "EnvSecretResolver",
    "EnvSource",
    "FileTemplateSource",
    "JsonTreeSource",
    "MemoryTemplateSource",
    "ModuleLoadError",
    "NodeStackBridge",
    "PipelineArgs",
    "PipelineContext",
    "PipelineManager",
    "PipelineState",
    "ResolutionError",
    "Result",
    "Settings",
    "StackBackendError",
    "StackBridge",
    "StackManager",
    "StackSettings",
    "Template",
    "TemplateLoadError",
    "TemplateManager",
    "TemplateSource",
    "TreeSource",
    "VarType",
    "VariableMetadata",
    "VariableProcessor",
    "YamlTreeSource",
    "configure_logging",
    "default_dependencies",
    "drain",
    "flow_scope",
    "init",
    "load_settings",
    "pipeline",
    "register_controllers",
]
