# Services package.
#
#   comment_service  CommentService: create / list / like toggle / edit /
#                      delete / cascade for comments, plus the moderator
#                      listing.  All authorization decisions live here.
#
# The service is constructed per request around a CommentStore and a
# PostLookup (see app.stores) so the router layer controls the
# transaction boundary via the ``get_db`` dependency and tests can swap
# in the in-memory stores.
