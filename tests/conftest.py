"""Shared fixtures: a small entity graph covering all four base types."""

from __future__ import annotations

import pytest

from hubsync.model import (
    BaseType,
    Category,
    CommandCollection,
    CommandItem,
    Folder,
    LinkCollection,
    LinkItem,
    Note,
    PromptCollection,
    PromptItem,
    Snapshot,
    Workspace,
)


def build_snapshot() -> Snapshot:
    return Snapshot(
        workspaces=[Workspace(id="ws1", name="Personal")],
        categories=[
            Category(id="c-notes", workspace_id="ws1", name="Notes", base_type=BaseType.NOTES),
            Category(id="c-cmd", workspace_id="ws1", name="Commands", base_type=BaseType.COMMANDS),
            Category(id="c-links", workspace_id="ws1", name="Links", base_type=BaseType.LINKS),
            Category(id="c-prompts", workspace_id="ws1", name="Prompts", base_type=BaseType.PROMPTS),
        ],
        folders=[
            Folder(id="f-work", category_id="c-notes", name="Work"),
            Folder(id="f-shell", category_id="c-cmd", name="Shell"),
            Folder(id="f-read", category_id="c-links", name="Reading List"),
            Folder(id="f-ai", category_id="c-prompts", name="AI"),
        ],
        notes=[
            Note(
                id="n1",
                folder_id="f-work",
                title="Ideas",
                content="# Ideas\n\n- ship it\n",
                tags=["work", "draft"],
                created_at="2024-01-01T00:00:00Z",
                updated_at="2024-01-02T00:00:00Z",
            ),
        ],
        commands=[
            CommandCollection(
                id="cmd1",
                folder_id="f-shell",
                title="Git",
                description="Everyday git",
                items=[
                    CommandItem(id="status", command="git status -sb", language="bash"),
                    CommandItem(
                        id="undo",
                        command="git reset --soft HEAD~1",
                        language="bash",
                        description="Undo last commit",
                    ),
                ],
            ),
        ],
        links=[
            LinkCollection(
                id="lnk1",
                folder_id="f-read",
                title="Python",
                items=[
                    LinkItem(id="l1", url="https://docs.python.org", title="Docs", description="Official"),
                    LinkItem(id="l2", url="https://pypi.org", title="PyPI"),
                ],
            ),
        ],
        prompts=[
            PromptCollection(
                id="prm1",
                folder_id="f-ai",
                title="Writing",
                category="text",
                items=[
                    PromptItem(
                        id="p1",
                        title="Summarize",
                        template="Summarize {{text}} in {{count}} bullets",
                        description="Short summary",
                    ),
                    PromptItem(id="p2", title="Plain", template="Say hello"),
                ],
            ),
        ],
    )


@pytest.fixture
def snapshot() -> Snapshot:
    return build_snapshot()
