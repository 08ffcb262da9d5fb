"""panenav: tell whether a tmux pane is running vim, for seamless pane navigation."""

__version__ = "0.1.0"
