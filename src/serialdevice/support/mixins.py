"""
Helpers for small value objects: a readable str(), equality by attributes, immutability.
Only public attributes (no leading underscore) take part in str() and equality.
"""


def quote(val):
    return "'%s'" % val if val is not None else "None"


def public_items(obj):
    return sorted((k, v) for k, v in vars(obj).items() if not k.startswith('_'))


class StringerMixin:

    def __str__(self):
        """ ClassName:{'attr': 'value', ...} with the attributes in name order """
        fields = ", ".join("'%s': %s" % (key, quote(val)) for key, val in public_items(self))
        return "%s:{%s}" % (type(self).__name__, fields)


class CommonEqualityMixin:
    """ equality for value objects: same class, same public attributes. """

    def __eq__(self, other):
        if not isinstance(other, type(self)):
            return NotImplemented
        return public_items(self) == public_items(other)

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self):
        return hash((type(self).__name__,) + tuple((k, repr(v)) for k, v in public_items(self)))


class FrozenMixin:
    """ refuses attribute assignment once _freeze() has been called. """

    def _freeze(self):
        object.__setattr__(self, '_frozen', True)

    def __setattr__(self, key, value):
        if getattr(self, '_frozen', False):
            raise AttributeError("%s is immutable" % type(self).__name__)
        super().__setattr__(key, value)
