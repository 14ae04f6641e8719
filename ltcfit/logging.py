from direct.directnotify.DirectNotify import DirectNotify
from direct.directnotify.Notifier import Notifier

CATEGORY = 'ltcfit'
NOTIFIER = None

def get() -> Notifier:
    global NOTIFIER # pylint: disable=global-statement
    if NOTIFIER is None:
        NOTIFIER = DirectNotify().newCategory(CATEGORY)
    return NOTIFIER

def debug_enabled() -> bool:
    return get().getDebug()

def debug(*args) -> None:
    get().debug(*args)

def info(*args) -> None:
    get().info(*args)

def warning(*args) -> None:
    get().warning(*args)
