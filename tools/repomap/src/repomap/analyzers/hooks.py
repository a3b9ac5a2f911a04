from __future__ import annotations

import re

QUERY_HOOKS = ("useQuery", "useLazyQuery", "useSuspenseQuery", "useBackgroundQuery", "useReadQuery")
MUTATION_HOOKS = ("useMutation",)
OTHER_HOOKS = ("useSubscription", "useFragment", "useApolloClient")
ALL_GRAPHQL_HOOKS = QUERY_HOOKS + MUTATION_HOOKS + OTHER_HOOKS

HOOK_TYPE_MAP = {
    "useQuery": "useQuery",
    "useSuspenseQuery": "useQuery",
    "useBackgroundQuery": "useQuery",
    "useReadQuery": "useQuery",
    "useLazyQuery": "useLazyQuery",
    "useMutation": "useMutation",
    "useSubscription": "useSubscription",
}

GRAPHQL_INDICATORS = (
    "Document",
    "useQuery",
    "useMutation",
    "useLazyQuery",
    "useSuspenseQuery",
    "useBackgroundQuery",
    "useSubscription",
    "Query",
    "Mutation",
    "gql",
    "graphql",
    "GET_",
    "FETCH_",
    "SEARCH_",
    "CREATE_",
    "UPDATE_",
    "DELETE_",
    "SUBSCRIBE_",
    "@apollo",
    "ApolloClient",
)

_CUSTOM_QUERY_RE = re.compile(r"^use[A-Z].*Query$")
_CUSTOM_MUTATION_RE = re.compile(r"^use[A-Z].*Mutation$")


def is_query_hook(name: str) -> bool:
    return name in QUERY_HOOKS or bool(_CUSTOM_QUERY_RE.match(name))


def is_mutation_hook(name: str) -> bool:
    return name in MUTATION_HOOKS or bool(_CUSTOM_MUTATION_RE.match(name))


def is_graphql_hook(name: str) -> bool:
    return name in ALL_GRAPHQL_HOOKS or is_query_hook(name) or is_mutation_hook(name)


def hook_type(name: str) -> str:
    if name in HOOK_TYPE_MAP:
        return HOOK_TYPE_MAP[name]
    if "Mutation" in name:
        return "useMutation"
    if "Lazy" in name:
        return "useLazyQuery"
    if "Subscription" in name:
        return "useSubscription"
    return "useQuery"


def clean_operation_name(name: str) -> str:
    name = re.sub(r"^(GET_|FETCH_|CREATE_|UPDATE_|DELETE_)", "", name)
    name = re.sub(r"_QUERY$|_MUTATION$", "", name)
    name = re.sub(r"Document$", "", name)
    return re.sub(r"Query$|Mutation$|Variables$|Subscription$", "", name)


def has_graphql_indicators(content: str) -> bool:
    return any(indicator in content for indicator in GRAPHQL_INDICATORS)
