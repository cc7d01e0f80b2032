"""Core task store, sync and correlation logic for taskmirror."""
