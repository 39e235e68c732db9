"""Select / filter / template pipeline over a command's ``--json`` output."""
