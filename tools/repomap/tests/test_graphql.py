from __future__ import annotations

from pathlib import Path

from repomap.analyzers.graphql import GraphQLAnalyzer, operations_from_source
from repomap.config import RepositoryConfig


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _analyzer(repo: Path) -> GraphQLAnalyzer:
    return GraphQLAnalyzer(RepositoryConfig(name="web", path=str(repo), type="nextjs"))


def _sample_repo(root: Path) -> Path:
    repo = root / "web"
    _write(
        repo,
        "src/graphql/user.graphql",
        """query GetUser($id: ID!) {
  user(id: $id) {
    id
    name
    ...UserFields
  }
}

fragment UserFields on User {
  email
}
""",
    )
    _write(repo, "src/graphql/broken.graphql", "query {\n")
    _write(
        repo,
        "src/features/user/queries.ts",
        """import { gql } from "@apollo/client";

export const UPDATE_USER = gql`
  mutation UpdateUser($id: ID!, $name: String) {
    updateUser(id: $id, name: $name) {
      id
    }
  }
`;
""",
    )
    _write(
        repo,
        "src/features/user/UserCard.tsx",
        """import { useMutation, useQuery } from "@apollo/client";
import { GetUserDocument } from "../../__generated__/graphql";
import { UPDATE_USER } from "./queries";

export function UserCard({ id }: { id: string }) {
  const { data } = useQuery(GetUserDocument, { variables: { id } });
  const [update] = useMutation(UPDATE_USER);
  return <div onClick={() => update()}>{data?.user?.name}</div>;
}
""",
    )
    return repo


def test_operations_from_files_and_inline_tags(tmp_path: Path) -> None:
    bag = _analyzer(_sample_repo(tmp_path)).run()
    operations = {item.name: item for item in bag.graphql_operations}

    assert set(operations) == {"GetUser", "UserFields", "UpdateUser"}

    get_user = operations["GetUser"]
    assert get_user.type == "query"
    assert get_user.file_path == "src/graphql/user.graphql"
    assert get_user.line == 1
    assert get_user.return_type == "user"
    assert get_user.fragments == ["UserFields"]
    assert [(item.name, item.type, item.required) for item in get_user.variables] == [("id", "ID!", True)]

    fragment = operations["UserFields"]
    assert fragment.type == "fragment"
    assert fragment.return_type == "User"

    update = operations["UpdateUser"]
    assert update.type == "mutation"
    assert update.file_path == "src/features/user/queries.ts"
    assert update.line == 4
    assert [(item.name, item.required) for item in update.variables] == [("id", True), ("name", False)]
    assert "UPDATE_USER" in update.variable_names

    assert bag.coverage is not None
    assert bag.coverage.graphql_parse_failures == 1


def test_usage_is_linked_to_consuming_files(tmp_path: Path) -> None:
    bag = _analyzer(_sample_repo(tmp_path)).run()
    operations = {item.name: item for item in bag.graphql_operations}

    assert operations["GetUser"].used_in == ["src/features/user/UserCard.tsx"]
    assert operations["UpdateUser"].used_in == ["src/features/user/UserCard.tsx"]


def test_codegen_documents_are_counted(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    _write(
        repo,
        "src/__generated__/graphql.ts",
        """export const ListOrdersDocument = {
  kind: "Document",
  definitions: [
    {
      kind: "OperationDefinition",
      operation: "query",
      name: { kind: "Name", value: "ListOrders" },
      variableDefinitions: [],
      selectionSet: {
        kind: "SelectionSet",
        selections: [{ kind: "Field", name: { kind: "Name", value: "orders" } }],
      },
    },
  ],
} as unknown as DocumentNode<ListOrdersQuery, ListOrdersQueryVariables>;
""",
    )

    bag = _analyzer(repo).run()

    assert [(item.name, item.type, item.return_type) for item in bag.graphql_operations] == [
        ("ListOrders", "query", "orders")
    ]
    assert bag.coverage is not None
    assert bag.coverage.codegen_files_detected == 1
    assert bag.coverage.codegen_exports_found == 1


def test_nested_selection_fields() -> None:
    (operation,) = operations_from_source(
        "query Feed { feed(first: 10) { items { id author { name } } } }",
        "feed.graphql",
    )

    (feed,) = operation.fields
    assert feed.name == "feed"
    assert feed.type == "(first)"
    assert [item.name for item in feed.fields[0].fields] == ["id", "author"]
