"""Unit tests for core/branches.py -- fix branch names, commit messages and PR titles."""

import pytest

from core.branches import (
    aggregated_pull_request_title,
    branch_hash,
    commit_message,
    generate_aggregated_branch_name,
    generate_fix_branch_name,
    pull_request_title,
    sanitize_ref,
    validate_branch_template,
)


class TestGenerateFixBranchName:
    @pytest.mark.parametrize(
        "base,package,fix,expected",
        [
            ("dev", "gopkg.in/yaml.v3", "3.0.0", "frogbot-gopkg.in/yaml.v3-d61bde82dc594e5ccc5a042fe224bf7c"),
            ("master", "gopkg.in/yaml.v3", "3.0.0", "frogbot-gopkg.in/yaml.v3-41405528994061bd108e3bbd4c039a03"),
            ("dev", "replace:colons:colons", "3.0.0", "frogbot-replace_colons_colons-89e555131b4a70a32fe9d9c44d6ff0fc"),
        ],
    )
    def test_known_names(self, base, package, fix, expected):
        assert generate_fix_branch_name(base, package, fix) == expected

    def test_deterministic(self):
        assert generate_fix_branch_name("main", "lodash", "4.17.21") == generate_fix_branch_name(
            "main", "lodash", "4.17.21"
        )

    def test_fix_version_changes_name(self):
        assert generate_fix_branch_name("main", "lodash", "4.17.20") != generate_fix_branch_name(
            "main", "lodash", "4.17.21"
        )

    def test_hash_covers_unsanitized_package(self):
        """Two packages that sanitize to the same text still get distinct branches."""
        a = generate_fix_branch_name("main", "a:b", "1.0")
        b = generate_fix_branch_name("main", "a b", "1.0")
        assert a.rsplit("-", 1)[0] == b.rsplit("-", 1)[0]
        assert a != b

    def test_custom_template(self):
        name = generate_fix_branch_name("main", "lodash", "4.17.21", "fix/${IMPACTED_PACKAGE}-${FIX_VERSION}-${BRANCH_NAME_HASH}")
        assert name == f"fix/lodash-4.17.21-{branch_hash('main', 'lodash', '4.17.21')}"

    def test_template_without_hash_rejected(self):
        with pytest.raises(ValueError, match="BRANCH_NAME_HASH"):
            generate_fix_branch_name("main", "lodash", "4.17.21", "fix-${IMPACTED_PACKAGE}")


class TestHelpers:
    def test_sanitize_keeps_slashes_and_dots(self):
        assert sanitize_ref("org.slf4j:slf4j-api") == "org.slf4j_slf4j-api"
        assert sanitize_ref("github.com/x/y") == "github.com/x/y"
        assert sanitize_ref("a~b^c?d*e[f\\g h") == "a_b_c_d_e_f_g_h"

    def test_empty_template_is_valid(self):
        assert validate_branch_template("") == ""

    def test_aggregated_branch(self):
        assert generate_aggregated_branch_name("npm") == "frogbot-update-npm-dependencies"

    def test_aggregated_branch_with_template(self):
        name = generate_aggregated_branch_name("npm", "deps/${IMPACTED_PACKAGE}-${BRANCH_NAME_HASH}")
        assert name.startswith("deps/update-npm-dependencies-")

    def test_commit_message_and_titles(self):
        assert commit_message("lodash", "4.17.21") == "Upgrade lodash to 4.17.21"
        assert pull_request_title("lodash", "4.17.21") == "[🐸 Frogbot] Update version of lodash to 4.17.21"
        assert pull_request_title("lodash", "4.17.21", "bump ${IMPACTED_PACKAGE}") == "bump lodash"
        assert aggregated_pull_request_title("maven") == "[🐸 Frogbot] Update maven dependencies"
