class ChangeTrackingMixin:
    """Records (old, new) pairs for writes to tracked attributes.

    Subclasses decide which attributes are tracked by overriding
    ``is_tracked``. The change map lives until ``clear_changes`` is called,
    which the record store does after every save.
    """

    __slots__ = ("_changed_attributes",)

    def __setattr__(self, key, value):
        if key == "_changed_attributes":
            super().__setattr__(key, value)
            return

        if self.is_tracked(key):
            self._record_change(key, value)

        super().__setattr__(key, value)

    @classmethod
    def is_tracked(cls, key):
        return False

    def _record_change(self, key, value):
        changes = self._changes()

        # Later writes in the same cycle keep the first old value but take the newest value.
        if key in changes:
            original = changes[key][0]
            if original == value:
                del changes[key]
            else:
                changes[key] = (original, value)
            return

        try:
            old_value = getattr(self, key)
        except AttributeError:
            old_value = None
        if old_value != value:
            changes[key] = (old_value, value)

    def _changes(self):
        if not hasattr(self, "_changed_attributes"):
            object.__setattr__(self, "_changed_attributes", {})
        return self._changed_attributes

    def changed(self, key=None):
        """With no argument, whether any tracked attribute changed; otherwise whether ``key`` changed"""
        changes = self._changes()
        if key is None:
            return len(changes) > 0
        return key in changes

    @property
    def changes(self):
        return dict(self._changes())

    def clear_changes(self):
        self._changes().clear()
