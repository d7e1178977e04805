"""Shared fixtures for the crawler tests."""
import os
from typing import List, Optional

import pytest

from processor.reference_data import ReferenceData


@pytest.fixture(autouse=True)
def aws_credentials():
    """Mocked AWS credentials for moto."""
    env_vars = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1'
    }
    saved = {key: os.environ.get(key) for key in env_vars}
    os.environ.update(env_vars)
    yield
    for key, value in saved.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture(scope='session')
def reference():
    """Reference data bundled with the processor."""
    return ReferenceData.load()


def build_thread(
    title: str,
    body: List[str],
    creator: str = "<a href='profile.php?lookup=7'>Cleverle</a>",
    posted_at: Optional[str] = "Verfasst am 12.03.2014 19:33",
    post_id: int = 4711
) -> List[str]:
    """
    Build the lines of a thread page laid out like the forum renders it.

    The title is on line 1, the creator 5 lines below it, the post id 3
    lines below the creator and the posting date 9 lines below the title.
    """
    return [
        "<html>",
        f"<td class='forum_thread_title'><strong>{title}</strong></td>",
        "<table class='tbl-border forum_thread_table'>",
        "<tr>",
        "<td class='tbl2 forum_thread_user_name'>",
        "<!--forum_thread_user_info-->",
        f"<td class='tbl2'><!--forum_thread_user_name-->{creator}</td>",
        "<td class='tbl2'>",
        "<div style='float:right'>",
        f"<a href='#post_{post_id}' name='post_{post_id}' id='post_{post_id}'>#1</a>",
        posted_at or "",
        "</div>",
    ] + body + [
        "<!--sub_forum_post_message-->",
        "</td></tr>",
        "</html>",
    ]


@pytest.fixture
def make_thread():
    """Factory for thread pages."""
    return build_thread
