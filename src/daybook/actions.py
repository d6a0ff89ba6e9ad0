"""Reversible document mutations and the undo/redo executor.

Each action's :meth:`Action.execute` performs its change against a
:class:`~daybook.context.JournalContext` and returns a newly built action
that reverses it. The reverse is made from captured data only, so running
it returns yet another fresh action (the redo), and so on.

Create, Paste and Edit are recorded after the change has already been
written, so their first ``execute`` does nothing but hand back the
reverse.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .codec import (
    remove_all_trailing_tags,
    remove_empty_entries,
    remove_last_trailing_tag,
    replace_tag,
)
from .context import EntryAddress, JournalContext
from .dates import bring_to_today, defer_date, remove_date
from .models import JournalError, RawEntry

MAX_UNDO_DEPTH = 50


class StatusVisibility(Enum):
    """When an action's description is shown to the user."""
    SILENT = "silent"
    ON_UNDO = "on_undo"
    ALWAYS = "always"


@dataclass(frozen=True)
class ActionDescription:
    past: str
    past_reversed: str
    visibility: StatusVisibility

    @classmethod
    def always(cls, past: str, past_reversed: str) -> "ActionDescription":
        return cls(past, past_reversed, StatusVisibility.ALWAYS)

    @classmethod
    def on_undo(cls, past: str, past_reversed: str) -> "ActionDescription":
        return cls(past, past_reversed, StatusVisibility.ON_UNDO)

    @classmethod
    def silent(cls) -> "ActionDescription":
        return cls("", "", StatusVisibility.SILENT)


class Action:
    """A reversible unit of document mutation."""

    def execute(self, ctx: JournalContext) -> "Action":
        raise NotImplementedError

    def description(self) -> ActionDescription:
        raise NotImplementedError


def _pluralize(count: int) -> str:
    return "entry" if count == 1 else "entries"


# -- create ---------------------------------------------------------------


@dataclass
class CreateTarget:
    address: EntryAddress
    entry: RawEntry


class CreateEntry(Action):
    def __init__(self, target: CreateTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        return UncreateEntry(self.target)

    def description(self) -> ActionDescription:
        return ActionDescription.on_undo("Created entry", "Removed entry")


class UncreateEntry(Action):
    def __init__(self, target: CreateTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        removed = ctx.delete_entry(self.target.address)
        entry = removed if removed is not None else self.target.entry
        return RecreateEntry(CreateTarget(self.target.address, entry))

    def description(self) -> ActionDescription:
        return ActionDescription.on_undo("Removed entry", "Created entry")


class RecreateEntry(Action):
    def __init__(self, target: CreateTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        address = self.target.address
        positions = ctx.insert_entries(address.day, address.line_index, [replace(self.target.entry)])
        return UncreateEntry(CreateTarget(EntryAddress(address.day, positions[0]), self.target.entry))

    def description(self) -> ActionDescription:
        return ActionDescription.on_undo("Created entry", "Removed entry")


# -- paste ----------------------------------------------------------------


@dataclass
class PasteTarget:
    day: date
    start_line_index: int
    entries: list[RawEntry]


def _paste_description(count: int, undone: bool = False) -> ActionDescription:
    pasted = f"Pasted {count} {_pluralize(count)}"
    removed = f"Removed {count} pasted {_pluralize(count)}"
    if undone:
        return ActionDescription.always(removed, pasted)
    return ActionDescription.always(pasted, removed)


class PasteEntries(Action):
    def __init__(self, target: PasteTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        return UnpasteEntries(self.target)

    def description(self) -> ActionDescription:
        return _paste_description(len(self.target.entries))


class UnpasteEntries(Action):
    def __init__(self, target: PasteTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        # Highest position first so the rest stay put
        for offset in reversed(range(len(self.target.entries))):
            ctx.delete_entry(EntryAddress(self.target.day, self.target.start_line_index + offset))
        return RepasteEntries(self.target)

    def description(self) -> ActionDescription:
        return _paste_description(len(self.target.entries), undone=True)


class RepasteEntries(Action):
    def __init__(self, target: PasteTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        entries = [replace(e) for e in self.target.entries]
        positions = ctx.insert_entries(self.target.day, self.target.start_line_index, entries)
        start = positions[0] if positions else self.target.start_line_index
        return UnpasteEntries(PasteTarget(self.target.day, start, self.target.entries))

    def description(self) -> ActionDescription:
        return _paste_description(len(self.target.entries))


# -- edit -----------------------------------------------------------------


@dataclass
class EditTarget:
    address: EntryAddress
    original_content: str
    new_content: str


class EditEntry(Action):
    def __init__(self, target: EditTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        return RestoreEdit(self.target)

    def description(self) -> ActionDescription:
        return ActionDescription.on_undo("Edited entry", "Reverted edit")


class RestoreEdit(Action):
    def __init__(self, target: EditTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        ctx.persist_entry_content(self.target.address, self.target.original_content)
        return RedoEdit(self.target)

    def description(self) -> ActionDescription:
        return ActionDescription.on_undo("Reverted edit", "Edited entry")


class RedoEdit(Action):
    def __init__(self, target: EditTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        ctx.persist_entry_content(self.target.address, self.target.new_content)
        return RestoreEdit(self.target)

    def description(self) -> ActionDescription:
        return ActionDescription.on_undo("Edited entry", "Reverted edit")


# -- content operations (dates, tags) -------------------------------------


@dataclass
class ContentTarget:
    """Where a content change happened and what was there before it."""
    address: EntryAddress
    original_content: str


def _apply_to_content(
    ctx: JournalContext,
    addresses: list[EntryAddress],
    operation: Callable[[str], Optional[str]],
    normalize: bool = True,
) -> list[ContentTarget]:
    """Run ``operation`` on each entry's content; ``None`` leaves it untouched."""
    targets = []
    for address in addresses:
        entry = ctx.get_entry(address)
        if entry is None:
            logger.warning(f"No entry at {address.day}[{address.line_index}]; skipped")
            continue
        current = entry.content
        targets.append(ContentTarget(address, current))
        updated = operation(current)
        if updated is None:
            continue
        if normalize:
            ctx.save_entry_content(address, updated)
        else:
            ctx.persist_entry_content(address, updated)
    return targets


def _restore_content(ctx: JournalContext, targets: list[ContentTarget]) -> list[EntryAddress]:
    addresses = []
    for target in targets:
        ctx.persist_entry_content(target.address, target.original_content)
        addresses.append(target.address)
    return addresses


class DateOperation(Enum):
    DEFER = "defer"
    REMOVE = "remove"
    BRING_TO_TODAY = "bring_to_today"


_DATE_LABELS = {
    DateOperation.DEFER: ("Deferred date", "Deferred dates on"),
    DateOperation.REMOVE: ("Removed date", "Removed dates from"),
    DateOperation.BRING_TO_TODAY: ("Set date to today", "Set date to today on"),
}


def _date_description(operation: DateOperation, count: int, undone: bool = False) -> ActionDescription:
    singular, plural = _DATE_LABELS[operation]
    if count == 1:
        done, restored = singular, "Restored date"
    else:
        done, restored = f"{plural} {count} entries", f"Restored dates on {count} entries"
    if undone:
        return ActionDescription.always(restored, done)
    return ActionDescription.always(done, restored)


class _DateAction(Action):
    operation: DateOperation

    def __init__(self, addresses: list[EntryAddress]):
        self.addresses = list(addresses)

    def transform(self, content: str, ctx: JournalContext) -> Optional[str]:
        raise NotImplementedError

    def execute(self, ctx: JournalContext) -> Action:
        targets = _apply_to_content(ctx, self.addresses, lambda c: self.transform(c, ctx))
        return RestoreDate(targets, self.operation)

    def description(self) -> ActionDescription:
        return _date_description(self.operation, len(self.addresses))


class DeferDate(_DateAction):
    """Move each entry's date one day later (tomorrow if it has none)."""
    operation = DateOperation.DEFER

    def transform(self, content: str, ctx: JournalContext) -> Optional[str]:
        return defer_date(content, ctx.today())


class RemoveDate(_DateAction):
    operation = DateOperation.REMOVE

    def transform(self, content: str, ctx: JournalContext) -> Optional[str]:
        return remove_date(content)


class BringToToday(_DateAction):
    operation = DateOperation.BRING_TO_TODAY

    def transform(self, content: str, ctx: JournalContext) -> Optional[str]:
        return bring_to_today(content, ctx.today())


_DATE_ACTIONS = {
    DateOperation.DEFER: DeferDate,
    DateOperation.REMOVE: RemoveDate,
    DateOperation.BRING_TO_TODAY: BringToToday,
}


class RestoreDate(Action):
    """Put back the content a date action replaced; redo re-runs that action."""

    def __init__(self, targets: list[ContentTarget], operation: DateOperation):
        self.targets = targets
        self.operation = operation

    def execute(self, ctx: JournalContext) -> Action:
        addresses = _restore_content(ctx, self.targets)
        return _DATE_ACTIONS[self.operation](addresses)

    def description(self) -> ActionDescription:
        return _date_description(self.operation, len(self.targets), undone=True)


class TagOperation(Enum):
    APPEND = "append"
    REMOVE_LAST = "remove_last"
    REMOVE_ALL = "remove_all"


def _tag_description(
    operation: TagOperation, count: int, tag: Optional[str] = None, undone: bool = False
) -> ActionDescription:
    if operation == TagOperation.APPEND:
        if count == 1:
            done, restored = f"Added #{tag}", f"Removed #{tag}"
        else:
            done, restored = f"Added #{tag} to {count} entries", f"Removed #{tag} from {count} entries"
    elif operation == TagOperation.REMOVE_LAST:
        if count == 1:
            done, restored = "Removed tag", "Restored tag"
        else:
            done, restored = f"Removed tags from {count} entries", f"Restored tags on {count} entries"
    else:
        if count == 1:
            done, restored = "Removed all tags", "Restored tags"
        else:
            done, restored = f"Removed all tags from {count} entries", f"Restored tags on {count} entries"
    if undone:
        return ActionDescription.always(restored, done)
    return ActionDescription.always(done, restored)


class AppendTag(Action):
    def __init__(self, addresses: list[EntryAddress], tag: str):
        self.addresses = list(addresses)
        self.tag = tag.lstrip("#")

    def execute(self, ctx: JournalContext) -> Action:
        suffix = f" #{self.tag}"
        targets = _apply_to_content(ctx, self.addresses, lambda c: f"{c}{suffix}", normalize=False)
        return RestoreContent(targets, TagOperation.APPEND, self.tag)

    def description(self) -> ActionDescription:
        return _tag_description(TagOperation.APPEND, len(self.addresses), self.tag)


class RemoveLastTag(Action):
    def __init__(self, addresses: list[EntryAddress]):
        self.addresses = list(addresses)

    def execute(self, ctx: JournalContext) -> Action:
        targets = _apply_to_content(ctx, self.addresses, remove_last_trailing_tag, normalize=False)
        return RestoreContent(targets, TagOperation.REMOVE_LAST)

    def description(self) -> ActionDescription:
        return _tag_description(TagOperation.REMOVE_LAST, len(self.addresses))


class RemoveAllTags(Action):
    def __init__(self, addresses: list[EntryAddress]):
        self.addresses = list(addresses)

    def execute(self, ctx: JournalContext) -> Action:
        targets = _apply_to_content(ctx, self.addresses, remove_all_trailing_tags, normalize=False)
        return RestoreContent(targets, TagOperation.REMOVE_ALL)

    def description(self) -> ActionDescription:
        return _tag_description(TagOperation.REMOVE_ALL, len(self.addresses))


class RestoreContent(Action):
    """Reverse of the tag actions."""

    def __init__(self, targets: list[ContentTarget], operation: TagOperation, tag: Optional[str] = None):
        self.targets = targets
        self.operation = operation
        self.tag = tag

    def execute(self, ctx: JournalContext) -> Action:
        addresses = _restore_content(ctx, self.targets)
        if self.operation == TagOperation.APPEND:
            return AppendTag(addresses, self.tag or "")
        if self.operation == TagOperation.REMOVE_LAST:
            return RemoveLastTag(addresses)
        return RemoveAllTags(addresses)

    def description(self) -> ActionDescription:
        return _tag_description(self.operation, len(self.targets), self.tag, undone=True)


# -- delete ---------------------------------------------------------------


@dataclass
class DeletedEntry:
    address: EntryAddress
    entry: RawEntry


def _delete_description(count: int, undone: bool = False) -> ActionDescription:
    deleted, restored = f"Deleted {_pluralize(count)}", f"Restored {_pluralize(count)}"
    if undone:
        return ActionDescription.always(restored, deleted)
    return ActionDescription.always(deleted, restored)


class DeleteEntries(Action):
    def __init__(self, addresses: list[EntryAddress]):
        self.addresses = list(addresses)

    def execute(self, ctx: JournalContext) -> Action:
        deleted = []
        day_contents: dict[date, str] = {}
        # Descending so earlier positions are not shifted before their turn
        for address in sorted(self.addresses, key=lambda a: (a.day, a.line_index), reverse=True):
            before = ctx.day_content(address.day)
            entry = ctx.delete_entry(address)
            if entry is not None:
                deleted.append(DeletedEntry(address, entry))
                day_contents.setdefault(address.day, before)
        deleted.reverse()
        return RestoreEntries(deleted, day_contents)

    def description(self) -> ActionDescription:
        return _delete_description(len(self.addresses))


class RestoreEntries(Action):
    """Put each day a delete touched back to its block from before the delete."""

    def __init__(self, entries: list[DeletedEntry], day_contents: dict[date, str]):
        self.entries = entries
        self.day_contents = day_contents

    def execute(self, ctx: JournalContext) -> Action:
        for day in sorted(self.day_contents):
            ctx.restore_day_content(day, self.day_contents[day])
        return DeleteEntries([item.address for item in self.entries])

    def description(self) -> ActionDescription:
        return _delete_description(len(self.entries), undone=True)


# -- move -----------------------------------------------------------------


@dataclass
class MoveTarget:
    source: EntryAddress
    source_content: str
    destination: EntryAddress


class MoveEntry(Action):
    """Take an entry off its day and append it to another day."""

    def __init__(self, address: EntryAddress, day: date):
        self.address = address
        self.day = day

    def execute(self, ctx: JournalContext) -> Action:
        before = ctx.day_content(self.address.day)
        entry = ctx.delete_entry(self.address)
        if entry is None:
            raise JournalError(f"No entry to move at {self.address.day}[{self.address.line_index}]")
        index = ctx.append_entries(self.day, [entry])
        return UnmoveEntry(MoveTarget(self.address, before, EntryAddress(self.day, index)))

    def description(self) -> ActionDescription:
        return ActionDescription.always(f"Moved to {self.day:%m/%d}", "Moved back")


class UnmoveEntry(Action):
    def __init__(self, target: MoveTarget):
        self.target = target

    def execute(self, ctx: JournalContext) -> Action:
        ctx.delete_entry(self.target.destination)
        ctx.restore_day_content(self.target.source.day, self.target.source_content)
        return MoveEntry(self.target.source, self.target.destination.day)

    def description(self) -> ActionDescription:
        return ActionDescription.always("Moved back", f"Moved to {self.target.destination.day:%m/%d}")


# -- document-wide tag rewrites -------------------------------------------


class DocumentTagOperation(Enum):
    DELETE = "delete"
    DELETE_FROM_COMPLETED = "delete_from_completed"
    RENAME = "rename"


@dataclass(frozen=True)
class TagRewrite:
    operation: DocumentTagOperation
    tag: str
    count: int
    new_tag: Optional[str] = None

    def apply(self, document: str) -> str:
        """The rewritten document, with entries left empty removed."""
        if self.operation == DocumentTagOperation.RENAME:
            updated = replace_tag(document, self.tag, self.new_tag)
        else:
            completed_only = self.operation == DocumentTagOperation.DELETE_FROM_COMPLETED
            updated = replace_tag(document, self.tag, completed_only=completed_only)
        return remove_empty_entries(updated)


def _rewrite_description(rewrite: TagRewrite, undone: bool = False) -> ActionDescription:
    count = rewrite.count
    if rewrite.operation == DocumentTagOperation.RENAME:
        done = f"Renamed #{rewrite.tag} to #{rewrite.new_tag}"
        restored = f"Renamed #{rewrite.new_tag} back to #{rewrite.tag}"
    elif rewrite.operation == DocumentTagOperation.DELETE_FROM_COMPLETED:
        done = f"Removed {count} tag occurrences from completed"
        restored = f"Restored {count} tag occurrences"
    else:
        done, restored = f"Deleted {count} tag occurrences", f"Restored {count} tag occurrences"
    if undone:
        return ActionDescription.always(restored, done)
    return ActionDescription.always(done, restored)


class RewriteTag(Action):
    """Delete or rename a tag everywhere in the document."""

    def __init__(self, rewrite: TagRewrite):
        self.rewrite = rewrite

    def execute(self, ctx: JournalContext) -> Action:
        original = ctx.document()
        ctx.replace_document(self.rewrite.apply(original))
        return RestoreDocument(original, self.rewrite)

    def description(self) -> ActionDescription:
        return _rewrite_description(self.rewrite)


class RestoreDocument(Action):
    def __init__(self, document: str, rewrite: TagRewrite):
        self.document = document
        self.rewrite = rewrite

    def execute(self, ctx: JournalContext) -> Action:
        ctx.replace_document(self.document)
        return RewriteTag(self.rewrite)

    def description(self) -> ActionDescription:
        return _rewrite_description(self.rewrite, undone=True)


# -- type and completion --------------------------------------------------


class CycleEntryType(Action):
    """Task -> Note -> Event -> Task."""

    def __init__(self, addresses: list[EntryAddress]):
        self.addresses = list(addresses)

    def execute(self, ctx: JournalContext) -> Action:
        originals = []
        for address in self.addresses:
            entry = ctx.get_entry(address)
            if entry is None:
                continue
            originals.append(DeletedEntry(address, entry))
            ctx.cycle_entry_type(address)
        return RestoreEntryType(originals)

    def description(self) -> ActionDescription:
        return ActionDescription.silent()


class RestoreEntryType(Action):
    def __init__(self, originals: list[DeletedEntry]):
        self.originals = originals

    def execute(self, ctx: JournalContext) -> Action:
        for item in self.originals:
            ctx.set_entry_type(item.address, item.entry)
        return CycleEntryType([item.address for item in self.originals])

    def description(self) -> ActionDescription:
        return ActionDescription.silent()


class ToggleComplete(Action):
    """Flip task completion; its own reverse."""

    def __init__(self, addresses: list[EntryAddress]):
        self.addresses = list(addresses)

    def execute(self, ctx: JournalContext) -> Action:
        for address in self.addresses:
            ctx.toggle_complete(address)
        return ToggleComplete(self.addresses)

    def description(self) -> ActionDescription:
        return ActionDescription.silent()


# -- executor -------------------------------------------------------------


class ActionExecutor:
    """Runs actions and keeps bounded undo/redo history.

    An action that raises is not recorded; the stacks are only touched
    after ``execute`` returns.
    """

    def __init__(self, max_depth: int = MAX_UNDO_DEPTH):
        self.max_depth = max_depth
        self._undo_stack: list[tuple[Action, ActionDescription]] = []
        self._redo_stack: list[tuple[Action, ActionDescription]] = []

    def execute(self, action: Action, ctx: JournalContext) -> Optional[str]:
        """Run ``action``; returns the status message, if it has one to show."""
        description = action.description()
        reverse = action.execute(ctx)

        self._undo_stack.append((reverse, description))
        if len(self._undo_stack) > self.max_depth:
            self._undo_stack.pop(0)
        self._redo_stack.clear()

        logger.info(f"Executed {type(action).__name__}")
        if description.visibility == StatusVisibility.ALWAYS:
            return description.past
        return None

    run = execute

    def undo(self, ctx: JournalContext) -> Optional[str]:
        if not self._undo_stack:
            return None
        action, original = self._undo_stack.pop()
        new_description = action.description()
        reverse = action.execute(ctx)
        self._redo_stack.append((reverse, new_description))
        logger.info(f"Undid with {type(action).__name__}")
        return _message(original)

    def redo(self, ctx: JournalContext) -> Optional[str]:
        if not self._redo_stack:
            return None
        action, original = self._redo_stack.pop()
        new_description = action.description()
        reverse = action.execute(ctx)
        self._undo_stack.append((reverse, new_description))
        logger.info(f"Redid with {type(action).__name__}")
        return _message(original)

    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()


def _message(description: ActionDescription) -> Optional[str]:
    if description.visibility == StatusVisibility.SILENT:
        return None
    return description.past_reversed
