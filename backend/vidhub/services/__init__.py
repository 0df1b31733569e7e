"""
Services

Store-facing building blocks shared by the routes: the query composer and
pagination, the session manager, and the relationship toggle. They take a
Session and plain ids, raise vidhub.errors types, and know nothing about
requests or responses.
"""
