from chromehar.protocol.base import Command


class PageCommands:
    """Builders for the Page domain commands the recorder issues."""

    @staticmethod
    def enable() -> Command:
        return Command(method='Page.enable')
