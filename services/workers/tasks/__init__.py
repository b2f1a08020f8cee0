from .builtin import register_builtin_tasks
