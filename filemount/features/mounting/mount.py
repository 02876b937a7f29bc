from __future__ import annotations

from typing import Any

from filemount.features.shared.messages import default_resolver
from filemount.features.uploads import Uploader

from .errors import MountConfigurationError
from .state import AttachmentState, MountConfig
from .validation import ValidationErrors

_STATES_KEY = "_filemount_states"
_ERRORS_KEY = "_filemount_errors"


class Mount:
    """Declare that a model attribute is backed by an uploader.

    The uploader's identifier is persisted in the mapped string attribute named
    by ``column`` (default ``<name>_identifier``, ``mount_on`` is an alias).
    Declaring ``image`` also installs ``remove_image`` and ``image_changed`` on
    the model class. The owner must subclass ``Attachable``, which hooks the
    attachment lifecycle into SQLAlchemy.
    """

    def __init__(
        self,
        uploader_cls: type[Uploader] = Uploader,
        *,
        column: str | None = None,
        mount_on: str | None = None,
        remove_previous_files: bool | None = None,
        **options: Any,
    ):
        if column and mount_on and column != mount_on:
            raise MountConfigurationError("Pass either column or mount_on, not both.")
        self.uploader_cls = uploader_cls
        self._column = column or mount_on
        self._remove_previous_files = remove_previous_files
        self._options = options
        self.config: MountConfig | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.config = MountConfig(
            name=name,
            uploader_cls=self.uploader_cls,
            column=self._column or f"{name}_identifier",
            remove_previous_files=self._remove_previous_files,
            options=dict(self._options),
        )
        mounts = dict(getattr(owner, "__mounts__", {}))
        mounts[name] = self.config
        owner.__mounts__ = mounts
        setattr(owner, f"remove_{name}", RemoveFlag(name))
        setattr(owner, f"{name}_changed", ChangedFlag(name))

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.attachment(self._name).get()

    def __set__(self, instance: Any, value: Any) -> None:
        instance.attachment(self._name).set(value)

    @property
    def _name(self) -> str:
        if self.config is None:
            raise MountConfigurationError("Mount must be declared in a class body.")
        return self.config.name


class RemoveFlag:
    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.attachment(self.name).remove

    def __set__(self, instance: Any, value: Any) -> None:
        instance.attachment(self.name).remove = value


class ChangedFlag:
    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.attachment(self.name).changed

    def __set__(self, instance: Any, value: Any) -> None:
        raise AttributeError(f"{self.name}_changed is read-only")


class Attachable:
    """Mixin for mapped classes that declare ``Mount`` attributes.

    Defining a subclass registers the default ``AttachmentLifecycle`` with
    SQLAlchemy. To use another observer, call ``register_lifecycle(observer)``
    before the first model is defined.
    """

    __mounts__ = {}
    __validators__ = ()
    message_resolver = default_resolver

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        from .lifecycle import register_lifecycle

        register_lifecycle()

    def attachment(self, name: str) -> AttachmentState:
        states = self.__dict__.setdefault(_STATES_KEY, {})
        state = states.get(name)
        if state is None:
            config = type(self).__mounts__.get(name)
            if config is None:
                raise MountConfigurationError(f"{type(self).__name__} has no mounted attribute '{name}'.")
            state = AttachmentState(self, config)
            states[name] = state
        return state

    def attachments(self) -> list[AttachmentState]:
        return [self.attachment(name) for name in type(self).__mounts__]

    def loaded_attachments(self) -> list[AttachmentState]:
        return list(self.__dict__.get(_STATES_KEY, {}).values())

    @property
    def errors(self) -> ValidationErrors:
        errors = self.__dict__.get(_ERRORS_KEY)
        if errors is None:
            errors = ValidationErrors(type(self).message_resolver)
            self.__dict__[_ERRORS_KEY] = errors
        return errors

    def validate(self) -> ValidationErrors:
        errors = self.errors
        errors.clear()
        for state in self.attachments():
            state.add_errors_to(errors)
        for validator in type(self).__validators__:
            validator(self)
        return errors

    def is_valid(self) -> bool:
        return not self.validate()
