"""Chat module: one-to-one chat records, creation and listing."""
