"""Core domain package for newsdesk.

Core contains the news-item lifecycle (normalizing, classifying, registry,
persistence, commands, render context) without any Telegram, template engine
or filesystem code, keeping the business logic portable.
"""
