"""
Form handles.

A FormHandle is the editable-record object a widget receives for
FormCreate/FormUpdate connections. Handles are values: validate() and a
failed submit() return a new handle rather than mutating the old one, so
a widget simply replaces the handle it holds.

Two implementations:
- ModelForm: backed by a pydantic model; field errors come from model
  validation
- MapForm: plain mapping with no schema, for resources without a model
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

# Key for errors that are not tied to a single field
FORM_ERROR_KEY = "_form"


@runtime_checkable
class FormHandle(Protocol):
    """Opaque editable-record handle."""

    @property
    def action(self) -> str: ...

    @property
    def values(self) -> dict[str, Any]: ...

    @property
    def errors(self) -> dict[str, list[str]]: ...

    def validate(self, partial: Mapping[str, Any]) -> FormHandle: ...

    def submit(self, input: Mapping[str, Any]) -> FormSubmission: ...


@dataclass(frozen=True, slots=True)
class FormSubmission:
    """
    Result of submitting a form.

    On success ``record`` holds the persisted record. On failure ``form``
    holds a new handle carrying the errors.
    """

    ok: bool
    record: Any = None
    form: FormHandle | None = None

    @classmethod
    def success(cls, record: Any) -> FormSubmission:
        return cls(ok=True, record=record)

    @classmethod
    def failure(cls, form: FormHandle) -> FormSubmission:
        return cls(ok=False, form=form)


def errors_from_validation(exc: ValidationError) -> dict[str, list[str]]:
    """Map a pydantic ValidationError to field -> messages."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ())) or FORM_ERROR_KEY
        errors.setdefault(loc, []).append(error.get("msg", "is invalid"))
    return errors


class ModelForm:
    """
    Form backed by a pydantic model.

    Args:
        model: Model class used for validation
        action: Name of the bound action
        commit: Persists a validated model instance, returns the record
        record: Existing record for update forms
        values: Current field values
        errors: Current field errors

    Example:
        form = ModelForm(User, "register", commit=save_user)
        form = form.validate({"email": "bad"})
        form.errors  # {"email": ["value is not a valid email address"]}
        result = form.submit({"email": "ada@example.com", "name": "Ada"})
    """

    def __init__(
        self,
        model: type[BaseModel],
        action: str,
        *,
        commit: Callable[[BaseModel], Any] | None = None,
        record: Any = None,
        values: Mapping[str, Any] | None = None,
        errors: Mapping[str, list[str]] | None = None,
    ):
        self._model = model
        self._action = action
        self._commit = commit
        self._record = record
        if values is None:
            values = _initial_values(record)
        self._values = dict(values)
        self._errors = {k: list(v) for k, v in (errors or {}).items()}

    @property
    def model(self) -> type[BaseModel]:
        return self._model

    @property
    def action(self) -> str:
        return self._action

    @property
    def record(self) -> Any:
        return self._record

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def errors(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._errors.items()}

    @property
    def is_update(self) -> bool:
        return self._record is not None

    @property
    def valid(self) -> bool:
        return not self._errors

    def validate(self, partial: Mapping[str, Any]) -> ModelForm:
        """
        Validate partial input.

        Only errors for fields that have been given a value are reported,
        so a half-filled form does not light up every required field.
        """
        merged = {**self._values, **partial}
        errors: dict[str, list[str]] = {}
        try:
            self._model.model_validate(merged)
        except ValidationError as e:
            errors = {
                loc: messages
                for loc, messages in errors_from_validation(e).items()
                if loc.split(".")[0] in merged
            }
        return self._derive(values=merged, errors=errors)

    def submit(self, input: Mapping[str, Any]) -> FormSubmission:
        merged = {**self._values, **input}
        try:
            instance = self._model.model_validate(merged)
        except ValidationError as e:
            return FormSubmission.failure(
                self._derive(values=merged, errors=errors_from_validation(e))
            )

        if self._commit is None:
            return FormSubmission.success(instance)

        try:
            record = self._commit(instance)
        except ValidationError as e:
            return FormSubmission.failure(
                self._derive(values=merged, errors=errors_from_validation(e))
            )
        except ValueError as e:
            return FormSubmission.failure(
                self._derive(values=merged, errors={FORM_ERROR_KEY: [str(e)]})
            )

        logger.info(f"[forms] {self._model.__name__}.{self._action} submitted")
        return FormSubmission.success(record)

    def _derive(self, *, values: dict[str, Any], errors: dict[str, list[str]]) -> ModelForm:
        return ModelForm(
            self._model,
            self._action,
            commit=self._commit,
            record=self._record,
            values=values,
            errors=errors,
        )

    def __repr__(self) -> str:
        return f"<ModelForm model={self._model.__name__} action={self._action!r}>"


def _initial_values(record: Any) -> dict[str, Any]:
    if record is None:
        return {}
    if isinstance(record, BaseModel):
        return record.model_dump()
    if isinstance(record, Mapping):
        return dict(record)
    return {}


class MapForm:
    """
    Schema-less form over a plain mapping.

    validate() never reports errors. Errors raised by ``commit`` on submit
    come back as a failed submission, the same way ModelForm reports them.
    """

    def __init__(
        self,
        action: str,
        *,
        values: Mapping[str, Any] | None = None,
        commit: Callable[[dict[str, Any]], Any] | None = None,
        errors: Mapping[str, list[str]] | None = None,
    ):
        self._action = action
        self._values = dict(values or {})
        self._commit = commit
        self._errors = {k: list(v) for k, v in (errors or {}).items()}

    @property
    def action(self) -> str:
        return self._action

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def errors(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._errors.items()}

    def validate(self, partial: Mapping[str, Any]) -> MapForm:
        return self._derive(values={**self._values, **partial})

    def submit(self, input: Mapping[str, Any]) -> FormSubmission:
        merged = {**self._values, **input}
        if self._commit is None:
            return FormSubmission.success(merged)

        try:
            record = self._commit(merged)
        except ValidationError as e:
            return FormSubmission.failure(
                self._derive(values=merged, errors=errors_from_validation(e))
            )
        except ValueError as e:
            return FormSubmission.failure(
                self._derive(values=merged, errors={FORM_ERROR_KEY: [str(e)]})
            )

        logger.info(f"[forms] {self._action} submitted")
        return FormSubmission.success(record)

    def _derive(
        self,
        *,
        values: dict[str, Any],
        errors: dict[str, list[str]] | None = None,
    ) -> MapForm:
        return MapForm(self._action, values=values, commit=self._commit, errors=errors)

    def __repr__(self) -> str:
        return f"<MapForm action={self._action!r}>"
