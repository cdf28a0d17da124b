"""
Build pipeline that turns a tree of markdown posts into a static blog dataset.
"""
