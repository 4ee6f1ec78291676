"""
Schema checks for the library config. Each leaf of config_validation.yaml that
carries a "type" names one of the parameter kinds below and the keyword
arguments used to build it.
"""

# Standard
from typing import Any, Dict, List, Optional, Type
import builtins

# First Party
import aconfig
import alog

# Local
from .. import constants
from ..utils import nested_get, parse_time_delta

log = alog.use_channel("CONFG")


################################################################################
## Public ######################################################################
################################################################################


def get_invalid_params(
    config: aconfig.Config,
    validation_config: aconfig.Config,
) -> List[str]:
    """Get the nested keys of every config value that does not match the
    validation config

    Args:
        config:  aconfig.Config
            The parsed config with any override values
        validation_config:  aconfig.Config
            The parallel config holding the parameter schema

    Returns:
        invalid_params:  List[str]
            The delimited keys of all parameters that fail validation
    """
    invalid_params = []
    for val_key, param in _parse_validation_config(validation_config).items():
        if not param.validate(nested_get(config, val_key)):
            log.warning("Found invalid config key [%s]", val_key)
            invalid_params.append(val_key)
    return invalid_params


################################################################################
## Parameters ##################################################################
################################################################################

# pylint: disable=too-few-public-methods


class _Parameter:
    """A config value of a fixed python type. Subclasses narrow the accepted
    values with _check.
    """

    TYPES = (object,)

    def __init__(self, optional: bool = False):
        self.optional = optional

    def validate(self, value: Any) -> bool:
        if value is None:
            return self.optional
        if not isinstance(value, self.TYPES):
            log.warning("Invalid type <%s>", type(value))
            return False
        if not self._check(value):
            log.warning("Invalid value [%s]", value)
            return False
        return True

    def _check(self, value: Any) -> bool:  # pylint: disable=unused-argument
        return True


class _BoolParameter(_Parameter):
    TYPES = (bool,)


class _IntParameter(_Parameter):
    """An int with optional inclusive bounds. The yaml keys are "min" and
    "max" so the builtin names are shadowed here.
    """

    TYPES = (int,)

    def __init__(
        self,
        *,
        min: Optional[int] = None,  # pylint: disable=redefined-builtin
        max: Optional[int] = None,  # pylint: disable=redefined-builtin
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._min = min
        self._max = max

    def _check(self, value: int) -> bool:
        # bool is an int subclass
        if isinstance(value, bool):
            return False
        return (self._min is None or value >= self._min) and (
            self._max is None or value <= self._max
        )


class _SizedParameter(_Parameter):
    """Shared length bounds for str and list values"""

    def __init__(
        self,
        *,
        min_len: Optional[int] = None,
        max_len: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._min_len = min_len
        self._max_len = max_len

    def _check(self, value) -> bool:
        return (self._min_len is None or len(value) >= self._min_len) and (
            self._max_len is None or len(value) <= self._max_len
        )


class _StrParameter(_SizedParameter):
    TYPES = (str,)


class _ListParameter(_SizedParameter):
    """A list with optional length bounds and an optional item type given as
    the name of a builtin (e.g. "str")
    """

    TYPES = (list,)

    def __init__(self, *, item_type: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self._item_type = None
        if item_type is not None:
            assert hasattr(builtins, item_type), f"Unsupported item_type: {item_type}"
            self._item_type = getattr(builtins, item_type)

    def _check(self, value: list) -> bool:
        return super()._check(value) and (
            self._item_type is None
            or all(isinstance(item, self._item_type) for item in value)
        )


class _DurationParameter(_Parameter):
    """A str that parses as a duration such as 5s, 10m or 1hr30m. An optional
    duration may also be the empty string.
    """

    TYPES = (str,)

    def _check(self, value: str) -> bool:
        if self.optional and value == "":
            return True
        return parse_time_delta(value) is not None


class _EnumParameter(_Parameter):
    """A value from a fixed list such as the log levels"""

    def __init__(self, *, values: List[Any], **kwargs):
        super().__init__(**kwargs)
        assert (
            isinstance(values, list) and values
        ), "Must specify at least one enum value!"
        self.values = values

    def _check(self, value: Any) -> bool:
        return value in self.values


# pylint: enable=too-few-public-methods

PARAMETER_TYPES: Dict[str, Type[_Parameter]] = {
    "bool": _BoolParameter,
    "duration": _DurationParameter,
    "enum": _EnumParameter,
    "int": _IntParameter,
    "list": _ListParameter,
    "str": _StrParameter,
}


################################################################################
## Parsing #####################################################################
################################################################################


def _construct_parameter(param_args: Dict[str, Any]) -> Optional[_Parameter]:
    """Build a parameter from its args in the validation file. A dict whose
    "type" is not a known parameter kind is not a parameter and gives None.
    """
    assert "type" in param_args, "All parameters must have a 'type'"
    param_args = dict(param_args)
    param_type = param_args.pop("type")
    if not (isinstance(param_type, str) and param_type in PARAMETER_TYPES):
        return None
    return PARAMETER_TYPES[param_type](**param_args)


def _parse_validation_config(
    validation_config: dict,
    prefix_parts: Optional[List[str]] = None,
) -> Dict[str, _Parameter]:
    """Walk the validation config and build a flat mapping from nested keys to
    parameters
    """
    prefix_parts = prefix_parts or []
    output_dict = {}
    for key, val in validation_config.items():
        if not isinstance(val, dict):
            continue
        key_parts = prefix_parts + [key]
        nested_key = constants.NESTED_DICT_DELIM.join(key_parts)

        param = _construct_parameter(val) if "type" in val else None
        if param:
            log.debug3("Found parameter at %s", nested_key)
            output_dict[nested_key] = param
        else:
            output_dict.update(
                _parse_validation_config(val, prefix_parts=key_parts)
            )

    return output_dict
