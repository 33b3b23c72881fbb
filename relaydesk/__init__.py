"""RelayDesk: routes support requests from requesters, through reviewers, to fulfillers and back."""

__version__ = "0.1.0"
