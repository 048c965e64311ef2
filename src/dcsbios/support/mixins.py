class CommonEqualityMixin(object):
    """ value equality for simple objects, comparing the instance dictionaries. """

    __hash__ = None

    def __eq__(self, other):
        return isinstance(other, self.__class__) and self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self.__eq__(other)


class ReprMixin:
    """ A repr listing the instance attributes in key order, e.g. ControlUpdate(address=16, data=b'..') """

    def __repr__(self):
        items = ", ".join("%s=%r" % (key.lstrip('_'), val) for key, val in sorted(self.__dict__.items()))
        return "%s(%s)" % (type(self).__name__, items)
