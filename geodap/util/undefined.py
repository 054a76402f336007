# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.


class _Undefined:
    """Marks a missing schema default or GeoJSON member,
    where None is a valid value.
    """

    def __repr__(self):
        return "UNDEFINED"

    def __eq__(self, other):
        return isinstance(other, _Undefined)

    def __hash__(self) -> int:
        return hash(_Undefined)

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNDEFINED = _Undefined()
