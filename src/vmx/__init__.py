"""vmx: dependency injection, lifecycle and reactive state for view-models."""

from importlib.metadata import version as _version

__version__ = _version("vmx")

from vmx._tracking import get_pending_count
from vmx.observable import Observable, ObservableList
from vmx.computed import Computed, computed
from vmx.reaction import Reaction, autorun, reaction
from vmx.action import action, transaction
from vmx.properties import (
    ComputedDefinition,
    computed_from,
    materialize,
    observable,
    observable_list,
    observe,
    subscribe,
)
from vmx.container import (
    Container,
    Lazy,
    Lifetime,
    RegistrationEntry,
    inject,
    singleton,
    transient,
)
from vmx.lifecycle import LifecycleController, LifecycleState, TransitionResult, ViewModel
from vmx.dialog import (
    DialogChannel,
    DialogResult,
    DialogService,
    MessageBox,
    MessageBoxOptions,
    ModalViewModel,
    Outcome,
    install,
)
from vmx.errors import (
    AlreadySettledError,
    CircularDependencyError,
    ContainerDisposedError,
    CyclicComputedDependencyError,
    InvalidLifecycleTransitionError,
    UnregisteredTokenError,
    VmxError,
)
# textual bridge NOT auto-imported — opt-in only

__all__ = [
    "Observable",
    "ObservableList",
    "Computed",
    "computed",
    "Reaction",
    "autorun",
    "reaction",
    "action",
    "transaction",
    "get_pending_count",
    "ComputedDefinition",
    "computed_from",
    "materialize",
    "observable",
    "observable_list",
    "observe",
    "subscribe",
    "Container",
    "Lazy",
    "Lifetime",
    "RegistrationEntry",
    "inject",
    "singleton",
    "transient",
    "LifecycleController",
    "LifecycleState",
    "TransitionResult",
    "ViewModel",
    "DialogChannel",
    "DialogResult",
    "DialogService",
    "MessageBox",
    "MessageBoxOptions",
    "ModalViewModel",
    "Outcome",
    "install",
    "AlreadySettledError",
    "CircularDependencyError",
    "ContainerDisposedError",
    "CyclicComputedDependencyError",
    "InvalidLifecycleTransitionError",
    "UnregisteredTokenError",
    "VmxError",
]
