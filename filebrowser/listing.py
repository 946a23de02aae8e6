"""
HTML directory listings with inline thumbnails.
"""
import base64
import html
import os
import posixpath
from typing import NamedTuple
from urllib.parse import quote

from .thumbnails import MimeKind, classify

THUMBNAIL_KINDS = (MimeKind.IMAGE, MimeKind.VIDEO)


class FileEntry(NamedTuple):
    name: str
    is_dir: bool
    kind: MimeKind


def scan_directory(path):
    """List the entries of path as FileEntry values, unsorted."""
    entries = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            entries.append(FileEntry(entry.name, is_dir, classify(entry.name)))
    return entries


def file_url(rel_path):
    """URL of a path relative to the served root.

    Quoted from the raw filesystem bytes so undecodable names still resolve.
    """
    return '/file/' + quote(os.fsencode(rel_path.strip('/')))


def display_name(name):
    """HTML-escaped name, with undecodable bytes shown as U+FFFD."""
    return html.escape(os.fsencode(name).decode('utf-8', errors='replace'))


def render_directory(entries, base_path, directory, cache):
    """Render entries of directory (served as base_path) as an HTML page.

    Hidden entries are skipped. Image and video entries get a base64 PNG
    thumbnail from cache when one can be produced.
    """
    base_path = base_path.strip('/')

    html_parts = [
        '<!DOCTYPE html><html><head><meta charset="utf-8"><title>Directory Listing</title></head><body>',
        f'<h1>Directory: {display_name(base_path)}</h1>',
        '<ul>',
    ]

    # Parent directory link
    if base_path:
        parent = posixpath.dirname(base_path)
        html_parts.append(f'<li><a href="{file_url(parent)}">..</a></li>')

    for entry in sorted(entries, key=lambda e: e.name):
        if entry.name.startswith('.'):
            continue

        url = file_url(posixpath.join(base_path, entry.name))
        name = display_name(entry.name)

        thumbnail = None
        if entry.kind in THUMBNAIL_KINDS:
            thumbnail = cache.get_or_create(os.path.join(directory, entry.name), entry.kind)

        if thumbnail:
            img_str = base64.b64encode(thumbnail).decode('ascii')
            html_parts.append(
                f'<li><a href="{url}">{name}'
                f'<img src="data:image/png;base64,{img_str}" height="200" /></a></li>'
            )
        else:
            html_parts.append(f'<li><a href="{url}">{name}</a></li>')

    html_parts.append('</ul></body></html>')
    return '\n'.join(html_parts)
