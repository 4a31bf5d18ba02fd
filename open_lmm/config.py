"""Typed parameter access over JSON configuration files."""

from __future__ import annotations

import enum
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, ClassVar, Optional, Sequence

import numpy as np

from .formatting import _rotation_to_quaternion, convert_to_string, format_quaternion

_log = logging.getLogger(__name__)

_MISSING: Any = object()

_COMMENT_OR_STRING = re.compile(
    r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/', re.DOTALL
)


class ParamKind(enum.Enum):
    """The type a parameter is read as."""

    ANY = "any"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BOOL_LIST = "bool_list"
    INT_LIST = "int_list"
    DOUBLE_LIST = "double_list"
    STRING_LIST = "string_list"
    VECTOR2 = "vector2"
    VECTOR3 = "vector3"
    VECTOR4 = "vector4"
    QUATERNION = "quaternion"
    ISOMETRY = "isometry"
    ISOMETRY_LIST = "isometry_list"


class ParamNotFoundError(LookupError):
    """A required parameter is absent or has the wrong shape."""


def _json_type(raw: Any) -> str:
    if raw is None:
        return "null"
    if isinstance(raw, bool):
        return "boolean"
    if isinstance(raw, (int, float)):
        return "number"
    if isinstance(raw, str):
        return "string"
    if isinstance(raw, list):
        return "array"
    return "object"


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    raise TypeError(f"type must be boolean, but is {_json_type(raw)}")


def _as_int(raw: Any) -> int:
    if isinstance(raw, (bool, int, float)):
        return int(raw)
    raise TypeError(f"type must be number, but is {_json_type(raw)}")


def _as_float(raw: Any) -> float:
    if isinstance(raw, (bool, int, float)):
        return float(raw)
    raise TypeError(f"type must be number, but is {_json_type(raw)}")


def _as_str(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    raise TypeError(f"type must be string, but is {_json_type(raw)}")


def _as_list(raw: Any, item: Callable[[Any], Any]) -> list:
    if not isinstance(raw, list):
        raise TypeError(f"type must be array, but is {_json_type(raw)}")
    return [item(v) for v in raw]


def _normalized(values: Sequence[float]) -> np.ndarray:
    vec = np.asarray(values, dtype=float)
    norm = float(np.linalg.norm(vec))
    return vec / norm if norm > 0 else vec


def quaternion_to_rotation(quat: Sequence[float]) -> np.ndarray:
    """Rotation matrix of a quaternion ``(x, y, z, w)``, normalised first."""
    x, y, z, w = _normalized(quat)
    tx, ty, tz = 2 * x, 2 * y, 2 * z
    twx, twy, twz = tx * w, ty * w, tz * w
    txx, txy, txz = tx * x, ty * x, tz * x
    tyy, tyz, tzz = ty * y, tz * y, tz * z
    return np.array(
        [
            [1 - (tyy + tzz), txy - twz, txz + twy],
            [txy + twz, 1 - (txx + tzz), tyz - twx],
            [txz - twy, tyz + twx, 1 - (txx + tyy)],
        ]
    )


def rotation_to_quaternion(rotation: Any) -> np.ndarray:
    """Quaternion ``(x, y, z, w)`` of a 3x3 rotation matrix."""
    return _rotation_to_quaternion(rotation)


def _isometry(values: Sequence[float]) -> np.ndarray:
    pose = np.eye(4)
    pose[:3, 3] = values[:3]
    pose[:3, :3] = quaternion_to_rotation(values[3:7])
    return pose


def _isometry_values(pose: Any) -> list[float]:
    matrix = np.asarray(pose, dtype=float)
    if matrix.shape != (4, 4):
        raise ValueError(f"pose must be 4x4, got shape {matrix.shape}")
    return [float(v) for v in (*matrix[:3, 3], *rotation_to_quaternion(matrix[:3, :3]))]


_SCALARS: dict[ParamKind, Callable[[Any], Any]] = {
    ParamKind.BOOL: _as_bool,
    ParamKind.INT: _as_int,
    ParamKind.FLOAT: _as_float,
    ParamKind.DOUBLE: _as_float,
    ParamKind.STRING: _as_str,
}

_LISTS: dict[ParamKind, Callable[[Any], Any]] = {
    ParamKind.BOOL_LIST: _as_bool,
    ParamKind.INT_LIST: _as_int,
    ParamKind.DOUBLE_LIST: _as_float,
    ParamKind.STRING_LIST: _as_str,
}

_VECTOR_SIZES = {ParamKind.VECTOR2: 2, ParamKind.VECTOR3: 3, ParamKind.VECTOR4: 4}


def _convert(kind: ParamKind, raw: Any) -> Any:
    """JSON value to the requested kind, or ``_MISSING`` if its size is wrong."""
    if kind is ParamKind.ANY:
        return raw
    if kind in _SCALARS:
        return _SCALARS[kind](raw)
    if kind in _LISTS:
        return _as_list(raw, _LISTS[kind])
    values = _as_list(raw, _as_float)
    if kind in _VECTOR_SIZES:
        return np.array(values) if len(values) == _VECTOR_SIZES[kind] else _MISSING
    if kind is ParamKind.QUATERNION:
        return _normalized(values) if len(values) == 4 else _MISSING
    if kind is ParamKind.ISOMETRY:
        return _isometry(values) if len(values) == 7 else _MISSING
    if len(values) % 7:
        return _MISSING
    return [_isometry(values[i : i + 7]) for i in range(0, len(values), 7)]


def _jsonable(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _invert(kind: ParamKind, value: Any) -> Any:
    """Value of the given kind to its JSON form."""
    if kind is ParamKind.ANY:
        return _jsonable(value)
    if kind in _SCALARS:
        return {ParamKind.BOOL: bool, ParamKind.INT: int, ParamKind.STRING: str}.get(
            kind, float
        )(value)
    if kind in _LISTS:
        item = {
            ParamKind.BOOL_LIST: bool,
            ParamKind.INT_LIST: int,
            ParamKind.STRING_LIST: str,
        }.get(kind, float)
        return [item(v) for v in value]
    if kind is ParamKind.ISOMETRY:
        return _isometry_values(value)
    if kind is ParamKind.ISOMETRY_LIST:
        return [v for pose in value for v in _isometry_values(pose)]
    values = [float(v) for v in np.ravel(value)]
    expected = 4 if kind is ParamKind.QUATERNION else _VECTOR_SIZES[kind]
    if len(values) != expected:
        raise ValueError(f"{kind.value} needs {expected} values, got {len(values)}")
    return values


def _infer_kind(kind: Optional[ParamKind], sample: Any) -> ParamKind:
    if kind is not None:
        return ParamKind(kind)
    if isinstance(sample, bool):
        return ParamKind.BOOL
    if isinstance(sample, int):
        return ParamKind.INT
    if isinstance(sample, float):
        return ParamKind.DOUBLE
    if isinstance(sample, str):
        return ParamKind.STRING
    return ParamKind.ANY


def _describe(kind: ParamKind, value: Any) -> str:
    if kind is ParamKind.QUATERNION:
        return format_quaternion(value)
    return convert_to_string(value)


def _strip_comments(text: str) -> str:
    return _COMMENT_OR_STRING.sub(
        lambda m: m.group(0) if m.group(0).startswith('"') else " ", text
    )


class Config:
    """Parameters loaded from a JSON file that may contain comments."""

    def __init__(self, config_filename: str | os.PathLike[str] = "") -> None:
        self.config_path = str(config_filename)
        self._data: Any = None
        if not self.config_path:
            return
        try:
            text = Path(self.config_path).read_text(encoding="utf-8")
        except OSError:
            _log.error("failed to open %s", self.config_path)
            return
        self._data = json.loads(_strip_comments(text))

    def create_date(self) -> str:
        """Current local time as ``YYYY_M_D_h_m_s`` without zero padding."""
        now = time.localtime()
        return (
            f"20{now.tm_year - 2000}_{now.tm_mon}_{now.tm_mday}_"
            f"{now.tm_hour}_{now.tm_min}_{now.tm_sec}"
        )

    def _lookup(self, modules: Sequence[str], param_name: str, kind: ParamKind) -> Any:
        node = self._data
        for module in modules:
            if not isinstance(node, dict) or module not in node:
                return _MISSING
            node = node[module]
        if not isinstance(node, dict) or param_name not in node:
            return _MISSING
        return _convert(kind, node[param_name])

    def param(
        self,
        module_name: str,
        param_name: str,
        default: Any = _MISSING,
        kind: Optional[ParamKind] = None,
    ) -> Any:
        """Read ``module_name/param_name``.

        Returns ``None`` when the parameter is absent and no default is given,
        otherwise the default (with a warning).
        """
        kind = _infer_kind(kind, None if default is _MISSING else default)
        found = self._lookup([module_name], param_name, kind)
        if found is _MISSING:
            if default is _MISSING:
                return None
            _log.warning("param %s/%s not found", module_name, param_name)
            _log.warning("use default_value=%s", _describe(kind, default))
            return default
        _log.debug("param %s/%s=%s", module_name, param_name, _describe(kind, found))
        return found

    def param_cast(
        self, module_name: str, param_name: str, kind: Optional[ParamKind] = None
    ) -> Any:
        """Read a parameter that must exist; raise ParamNotFoundError otherwise."""
        kind = _infer_kind(kind, None)
        found = self._lookup([module_name], param_name, kind)
        if found is _MISSING:
            _log.critical("param %s/%s not found", module_name, param_name)
            raise ParamNotFoundError(f"param {module_name}/{param_name} not found")
        _log.debug("param %s/%s=%s", module_name, param_name, _describe(kind, found))
        return found

    @staticmethod
    def _nested_label(nested_module_names: Sequence[str]) -> str:
        return "".join(f"{name}/" for name in nested_module_names)

    def _lookup_nested(
        self, nested_module_names: Sequence[str], param_name: str, kind: ParamKind
    ) -> Any:
        if not nested_module_names:
            raise ValueError("nested_module_names must not be empty")
        return self._lookup(list(nested_module_names), param_name, kind)

    def param_nested(
        self,
        nested_module_names: Sequence[str],
        param_name: str,
        default: Any = _MISSING,
        kind: Optional[ParamKind] = None,
    ) -> Any:
        """Read a parameter below a chain of nested modules."""
        kind = _infer_kind(kind, None if default is _MISSING else default)
        found = self._lookup_nested(nested_module_names, param_name, kind)
        if found is _MISSING:
            if default is _MISSING:
                return None
            _log.warning("param %s not found", self._nested_label(nested_module_names))
            _log.warning("use default_value=%s", _describe(kind, default))
            return default
        return found

    def param_cast_nested(
        self,
        nested_module_names: Sequence[str],
        param_name: str,
        kind: Optional[ParamKind] = None,
    ) -> Any:
        """Read a nested parameter that must exist."""
        kind = _infer_kind(kind, None)
        found = self._lookup_nested(nested_module_names, param_name, kind)
        if found is _MISSING:
            label = self._nested_label(nested_module_names)
            _log.critical("param %s not found", label)
            raise ParamNotFoundError(f"param {label} not found")
        return found

    def override_param(
        self,
        module_name: str,
        param_name: str,
        value: Any,
        kind: Optional[ParamKind] = None,
    ) -> bool:
        """Set a parameter in memory; the file on disk is left untouched."""
        kind = _infer_kind(kind, value)
        if self._data is None:
            self._data = {}
        if not isinstance(self._data, dict):
            raise TypeError(f"cannot use operator[] with a {_json_type(self._data)}")
        module = self._data.get(module_name)
        if module is None:
            module = self._data[module_name] = {}
        if not isinstance(module, dict):
            raise TypeError(f"cannot use operator[] with a {_json_type(module)}")
        module[param_name] = _invert(kind, value)
        return True

    def save(self, path: str | os.PathLike[str]) -> None:
        """Write the parameters as indented JSON."""
        text = json.dumps(self._data, indent=2, ensure_ascii=False)
        Path(path).write_text(text + "\n", encoding="utf-8")


class GlobalConfig(Config):
    """Process-wide configuration rooted at a directory holding ``config.json``."""

    _inst: ClassVar[Optional["GlobalConfig"]] = None

    def __init__(self, global_config_path: str | os.PathLike[str]) -> None:
        super().__init__(global_config_path)
        self.date = ""

    @classmethod
    def instance(cls, config_path: str | os.PathLike[str] = "") -> "GlobalConfig":
        """The shared instance, created from ``config_path`` on first use."""
        if GlobalConfig._inst is None:
            root = str(config_path)
            inst = GlobalConfig(root + "/config.json")
            inst.override_param("global", "config_path", root, ParamKind.STRING)
            inst.date = inst.create_date()
            GlobalConfig._inst = inst
        return GlobalConfig._inst

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance so the next call to instance() reloads."""
        GlobalConfig._inst = None

    @classmethod
    def get_global_config_path(cls, config_name: str) -> str:
        """Path of the named module configuration file."""
        config = cls.instance()
        directory = config.param("global", "config_path", ".", ParamKind.STRING)
        filename = config.param(
            "global", config_name, config_name + ".json", ParamKind.STRING
        )
        return directory + "/" + filename

    @classmethod
    def get_root_data_dir(cls) -> str:
        """Root directory of the input data."""
        return cls.instance().param("directory", "root_dir_path", "", ParamKind.STRING)

    @classmethod
    def get_sub_dir_list(cls) -> list[str]:
        """Per-agent data sub-directories."""
        return cls.instance().param(
            "directory", "sub_dir_list", [], ParamKind.STRING_LIST
        )

    @classmethod
    def get_save_dir_path(cls) -> str:
        """Output directory, stamped with the creation date of the instance."""
        config = cls.instance()
        root = config.param("directory", "root_save_dir", "", ParamKind.STRING)
        return root + "/" + config.date