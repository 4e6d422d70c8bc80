from fa_ui.ui.progress import RichProgressHandle, SharedProgress
from fa_ui.ui.prompts import confirm_or_cancel
from fa_ui.ui.terminal import RichUI

__all__ = ["RichProgressHandle", "RichUI", "SharedProgress", "confirm_or_cancel"]
