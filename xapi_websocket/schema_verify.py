"""Composable verifiers that check the shape of decoded JSON documents.

A verifier is built once, usually at module import time, and then used to
check many objects.  verify() returns the object (or a filtered copy of it)
and raises ValidationError with a ``reason`` parameter if the object does not
conform.  matches() is a convenience that returns a bool instead.
"""

from .exceptions import ValidationError


class Verifier:
    """Base verifier that accepts any object.

    Args:
        desc (str): An optional description of what is being verified.
    """

    def __init__(self, desc=None):
        self.description = desc

    def matches(self, obj):
        """Return True if obj conforms to this verifier."""

        try:
            self.verify(obj)
            return True
        except ValidationError:
            return False

    def verify(self, obj):
        """Verify obj and return it.

        Raises:
            ValidationError: obj does not conform to the schema.
        """

        return obj


class NoneVerifier(Verifier):
    """Verify that an object is None."""

    def verify(self, obj):
        if obj is not None:
            raise ValidationError("Object is not None", reason='%s is not None' % str(obj), object=obj)

        return obj


class StringVerifier(Verifier):
    """Verify that an object is a string."""

    def verify(self, obj):
        if not isinstance(obj, str):
            raise ValidationError("Object is not a string", reason='object is not a string', object=obj)

        return obj


class BooleanVerifier(Verifier):
    """Verify that an object is a bool."""

    def verify(self, obj):
        if not isinstance(obj, bool):
            raise ValidationError("Object is not a boolean", reason='object is not a boolean', object=obj)

        return obj


class IntVerifier(Verifier):
    """Verify that an object is an integer (bools are rejected)."""

    def verify(self, obj):
        if isinstance(obj, bool) or not isinstance(obj, int):
            raise ValidationError("Object is not an int", reason='object is not an int', object=obj)

        return obj


class NumberVerifier(Verifier):
    """Verify that an object is an int or a float (bools are rejected)."""

    def verify(self, obj):
        if isinstance(obj, bool) or not isinstance(obj, (int, float)):
            raise ValidationError("Object is not a number", reason='object is not a number', object=obj)

        return obj


class LiteralVerifier(Verifier):
    """Verify that an object is equal to a literal value.

    Args:
        literal (object): The value the object must equal.
        desc (str): An optional description.
    """

    def __init__(self, literal, desc=None):
        super(LiteralVerifier, self).__init__(desc)
        self._literal = literal

    def verify(self, obj):
        if obj != self._literal:
            raise ValidationError("Object is not equal to literal",
                                  reason='%s is not equal to %s' % (str(obj), str(self._literal)), object=obj)

        return obj


class ListVerifier(Verifier):
    """Verify that an object is a list whose items all match a verifier.

    Args:
        verifier (Verifier): The verifier applied to each item.
        min_length (int): Optional minimum number of items.
        desc (str): An optional description.
    """

    def __init__(self, verifier, min_length=None, desc=None):
        super(ListVerifier, self).__init__(desc)
        self._verifier = verifier
        self._min_length = min_length

    def verify(self, obj):
        if not isinstance(obj, list):
            raise ValidationError("Object is not a list", reason='object is not a list', object=obj)

        if self._min_length is not None and len(obj) < self._min_length:
            raise ValidationError("List is too short", reason='list has %d items, need at least %d'
                                  % (len(obj), self._min_length), object=obj)

        return [self._verifier.verify(x) for x in obj]


class OptionsVerifier(Verifier):
    """Verify that an object matches at least one of several verifiers.

    The result of the first verifier that matches is returned.
    """

    def __init__(self, *args, desc=None):
        super(OptionsVerifier, self).__init__(desc)
        self._options = args

    def verify(self, obj):
        if len(self._options) == 0:
            raise ValidationError("No options", reason='no options given in options verifier, matching not possible',
                                  object=obj)

        failures = {}

        for i, option in enumerate(self._options):
            try:
                return option.verify(obj)
            except ValidationError as exc:
                failures['option_%d' % (i + 1)] = exc.params.get('reason')

        raise ValidationError("Object did not match any of a set of options",
                              reason="object did not match any given option (first failure = '%s')"
                              % failures['option_1'], **failures)


class DictionaryVerifier(Verifier):
    """Verify the keys and values of a dictionary.

    Keys that are neither required nor optional are rejected unless
    allow_extra is True, in which case they are passed through untouched.

    Args:
        desc (str): An optional description.
        allow_extra (bool): Accept keys that were not declared.
    """

    def __init__(self, desc=None, allow_extra=False):
        super(DictionaryVerifier, self).__init__(desc)

        self._required_keys = {}
        self._optional_keys = {}
        self._allow_extra = allow_extra

    def add_required(self, key, verifier):
        """Add a key that must be present."""

        self._required_keys[key] = verifier

    def add_optional(self, key, verifier):
        """Add a key that may be present."""

        self._optional_keys[key] = verifier

    def verify(self, obj):
        if not isinstance(obj, dict):
            raise ValidationError("Invalid dictionary", reason="object is not a dictionary", object=obj)

        out_obj = {}
        unmatched_keys = set(obj.keys())

        for key, verifier in self._required_keys.items():
            if key not in obj:
                raise ValidationError("Required key not found in dictionary",
                                      reason="required key %s not found" % key, key=key)

            out_obj[key] = verifier.verify(obj[key])
            unmatched_keys.discard(key)

        for key in list(unmatched_keys):
            if key not in self._optional_keys:
                continue

            out_obj[key] = self._optional_keys[key].verify(obj[key])
            unmatched_keys.discard(key)

        if len(unmatched_keys) > 0:
            if not self._allow_extra:
                raise ValidationError("Extra key found in dictionary that does not allow extra keys",
                                      reason="extra keys found that were not expected", keys=sorted(unmatched_keys))

            for key in unmatched_keys:
                out_obj[key] = obj[key]

        return out_obj
