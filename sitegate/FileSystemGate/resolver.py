"""
FileSystemGate path resolution.

Turns user-supplied paths into canonical paths and enforces containment:
everything must live inside the parent of the installation root, and the
platform's core subtrees are never mutable.
"""

import os
from typing import Optional, Tuple

from sitegate.shared.gate import PathUtils

from .models import GuardConfig
from .security import AccessDeniedError, InvalidInputError, NotFoundError


class PathResolver:
    """Canonicalizes paths against the installation root."""

    def __init__(self, config: GuardConfig):
        self.config = config
        self.root = os.path.realpath(config.install_root)
        # Containment is relative to the root's parent so sibling files
        # such as an outer .env stay reachable
        self.allowed_base = os.path.dirname(self.root)
        self.core_dirs = tuple(
            os.path.join(self.root, subtree.strip("/\\")) for subtree in config.core_subtrees
        )
        # The backup store and change log are written only by the guard itself
        self.guarded_stores = tuple(
            os.path.realpath(store)
            for store in (config.backup_root, config.changelog_path)
            if store
        )

    def absolute(self, user_path: str) -> str:
        """Join a relative path onto the installation root (no canonicalization)."""
        if not user_path or user_path == ".":
            return self.root
        if os.path.isabs(user_path):
            return user_path
        return os.path.join(self.root, user_path)

    def is_contained(self, canonical: str) -> bool:
        """Check that a canonical path lies within the allowed base."""
        return PathUtils.is_within(canonical, self.allowed_base)

    def _check_contained(self, canonical: str, label: str = "Path") -> None:
        if not self.is_contained(canonical):
            raise AccessDeniedError(
                f"Access denied. {label} must be within the installation directory."
            )

    def resolve(self, user_path: str, must_exist: bool = True, label: str = "Path") -> str:
        """
        Resolve a user-supplied path to its canonical form.

        Args:
            user_path: Absolute path, or path relative to the installation root
            must_exist: Fail with NotFound when the target is missing
            label: Noun used in error messages ("Source", "Destination")

        Returns:
            Canonical absolute path

        Raises:
            NotFoundError: Target missing and must_exist is set
            AccessDeniedError: Canonical path escapes the allowed base
        """
        canonical = os.path.realpath(self.absolute(user_path))
        self._check_contained(canonical, label)

        if must_exist and not os.path.exists(canonical):
            raise NotFoundError(f"{label} not found: {user_path}")

        return canonical

    def resolve_target(self, user_path: str, label: str = "Path") -> str:
        """
        Resolve a path whose leaf may not exist yet.

        Only the parent directory has to exist and pass containment; the
        leaf name is checked separately by the content scanner.
        """
        if not user_path:
            raise InvalidInputError(f"{label} is required.")

        full = self.absolute(user_path)
        parent, leaf = os.path.split(full.rstrip("/\\") or full)
        if leaf in ("", ".", ".."):
            raise InvalidInputError(f"{label} must name a file: {user_path}")

        real_parent = os.path.realpath(parent)
        self._check_contained(real_parent, label)

        if not os.path.isdir(real_parent):
            raise NotFoundError(f"Directory does not exist: {parent}")

        target = os.path.join(real_parent, leaf)
        if os.path.islink(target):
            # Writing through a link lands on its target
            target = os.path.realpath(target)
            self._check_contained(target, label)
        return target

    def resolve_new_directory(self, user_path: str, parents: bool) -> Tuple[str, str]:
        """
        Resolve a directory that is about to be created.

        The nearest existing ancestor must pass containment, whether or not
        intermediate directories are going to be created.

        Returns:
            Tuple of (target_path, nearest_existing_ancestor)
        """
        if not user_path or user_path == ".":
            raise InvalidInputError("Path is required.")

        full = os.path.normpath(self.absolute(user_path))
        self._check_contained(os.path.realpath(full))
        parent = os.path.dirname(full)

        if not os.path.isdir(parent) and not parents:
            raise NotFoundError("Parent directory does not exist.")

        ancestor = parent
        while not os.path.isdir(ancestor):
            next_up = os.path.dirname(ancestor)
            if next_up == ancestor:
                break
            ancestor = next_up

        real_ancestor = os.path.realpath(ancestor)
        self._check_contained(real_ancestor)

        target = os.path.join(real_ancestor, os.path.relpath(full, ancestor))
        self._check_contained(os.path.normpath(target))
        return os.path.normpath(target), real_ancestor

    def core_subtree_for(self, canonical: str) -> Optional[str]:
        """Return the core subtree containing the path, if any."""
        for core_dir in self.core_dirs:
            if PathUtils.is_within(canonical, core_dir):
                return core_dir
        return None

    def assert_mutable(self, canonical: str) -> None:
        """
        Refuse mutations under the core subtrees and the guard's own stores.

        This holds whatever capability the caller has.
        """
        core_dir = self.core_subtree_for(canonical)
        if core_dir is not None:
            subtree = os.path.basename(core_dir)
            raise AccessDeniedError(f"Cannot modify core files in {subtree}/.")
        self.assert_not_guarded(canonical)

    def is_guarded(self, canonical: str) -> bool:
        """Check whether a path is the change log, the backup store or inside it."""
        return any(PathUtils.is_within(canonical, store) for store in self.guarded_stores)

    def assert_not_guarded(self, canonical: str) -> None:
        """
        Refuse mutations of the change log and the backup store.

        Backups leave only through the retention sweep and the log only grows.
        """
        if self.is_guarded(canonical):
            raise AccessDeniedError("Cannot modify the change log or backup store.")

    def is_critical(self, canonical: str) -> bool:
        """Critical files live directly in the installation root."""
        return (
            os.path.dirname(canonical) == self.root
            and os.path.basename(canonical) in self.config.critical_files
        )
