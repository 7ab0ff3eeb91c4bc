from restar.util import types
