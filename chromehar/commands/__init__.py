from chromehar.commands.fetch_commands import FetchCommands
from chromehar.commands.network_commands import NetworkCommands
from chromehar.commands.page_commands import PageCommands

__all__ = ['FetchCommands', 'NetworkCommands', 'PageCommands']
