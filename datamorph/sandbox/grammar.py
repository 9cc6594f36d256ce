"""Grammar for the restricted expression/script language.

A JavaScript-flavoured subset: literals, template strings, member access,
calls, arrow functions, the usual operators, and in scripts ``const``/``let``
declarations, ``if``/``else``, ``for ... of`` and ``return``. Simple
statements are separated by ``;`` unless they end a block; the compiler
also ends a statement at a line break the next line cannot continue.
"""

from functools import lru_cache

from lark import Lark

GRAMMAR = r"""
program: stmt_list
expression: expr

stmt_list: _terminated* _last?
_terminated: _simple _SEMI
           | _compound
           | _SEMI
_last: _simple

_simple: var_decl
       | return_stmt
       | break_stmt
       | continue_stmt
       | expr_stmt

_compound: block
         | if_stmt
         | for_of_stmt

_body: _compound
     | _simple _SEMI?

block.2: "{" stmt_list "}"
var_decl: DECL declarator ("," declarator)*
declarator: NAME ("=" assignment)?
return_stmt: _RETURN expr?
break_stmt: _BREAK
continue_stmt: _CONTINUE
expr_stmt: expr
if_stmt: _IF "(" expr ")" _body (_ELSE _body)?
for_of_stmt: _FOR "(" DECL NAME _OF expr ")" _body

?expr: assignment

?assignment: conditional
           | arrow_fn
           | postfix ASSIGN_OP assignment -> assign

arrow_fn: arrow_params "=>" arrow_body
arrow_params: NAME -> single_param
            | "(" (NAME ("," NAME)*)? ")" -> params
arrow_body: block -> block_body
          | assignment -> expr_body

?conditional: nullish
            | nullish "?" assignment ":" assignment -> ternary

?nullish: logical_or
        | nullish "??" logical_or -> nullish_op

?logical_or: logical_and
           | logical_or "||" logical_and -> or_op

?logical_and: equality
            | logical_and "&&" equality -> and_op

?equality: relational
         | equality EQ_OP relational -> binary

?relational: additive
           | relational REL_OP additive -> binary

?additive: multiplicative
         | additive ADD_OP multiplicative -> binary

?multiplicative: unary
               | multiplicative MUL_OP unary -> binary

?unary: update
      | "!" unary -> not_op
      | "-" unary -> neg
      | "+" unary -> pos
      | _TYPEOF unary -> typeof_op

?update: postfix
       | postfix INCDEC -> postfix_update

?postfix: primary
        | postfix "." PROP -> member
        | postfix "?." PROP -> opt_member
        | postfix "[" expr "]" -> index
        | postfix "(" arguments? ")" -> call

arguments: _item ("," _item)* ","?
elements: _item ("," _item)* ","?
_item: assignment
     | spread
spread: "..." assignment

?primary: NUMBER -> number
        | STRING -> string
        | TEMPLATE -> template
        | _TRUE -> true
        | _FALSE -> false
        | _NULL -> null
        | _UNDEFINED -> undefined
        | NAME -> var
        | "[" elements? "]" -> array
        | "{" properties? "}" -> object
        | "(" expr ")"

properties: property ("," property)* ","?
property: PROP ":" assignment -> prop_pair
        | STRING ":" assignment -> prop_string
        | NUMBER ":" assignment -> prop_number
        | "[" expr "]" ":" assignment -> prop_computed
        | NAME -> prop_shorthand
        | "..." assignment -> prop_spread

DECL: /(?:const|let|var)(?![\w$])/
_RETURN: /return(?![\w$])/
_BREAK: /break(?![\w$])/
_CONTINUE: /continue(?![\w$])/
_IF: /if(?![\w$])/
_ELSE: /else(?![\w$])/
_FOR: /for(?![\w$])/
_OF: /of(?![\w$])/
_TYPEOF: /typeof(?![\w$])/
_TRUE: /true(?![\w$])/
_FALSE: /false(?![\w$])/
_NULL: /null(?![\w$])/
_UNDEFINED: /undefined(?![\w$])/

NAME: /(?!(?:return|break|continue|if|else|for|const|let|var|typeof|true|false|null|undefined|function|new|while|do|this|class|delete|void|in|instanceof|switch|case|throw|try|catch)(?![\w$]))[a-zA-Z_$][\w$]*/
PROP: /[a-zA-Z_$][\w$]*/
NUMBER: /(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?/
STRING: /"(?:[^"\\\n]|\\.)*"/
      | /'(?:[^'\\\n]|\\.)*'/
TEMPLATE: /`(?:[^`\\]|\\.)*`/s

EQ_OP: "===" | "!==" | "==" | "!="
REL_OP: "<=" | ">=" | "<" | ">"
ADD_OP: "+" | "-"
MUL_OP: "*" | "/" | "%"
ASSIGN_OP: "=" | "+=" | "-=" | "*=" | "/=" | "%="
INCDEC: "++" | "--"
_SEMI: ";"

LINE_COMMENT: /\/\/[^\n]*/
BLOCK_COMMENT: /\/\*[\s\S]*?\*\//

%import common.WS
%ignore WS
%ignore LINE_COMMENT
%ignore BLOCK_COMMENT
"""


@lru_cache(maxsize=None)
def get_parser() -> Lark:
    """Build (once) the Earley parser for programs and single expressions."""
    return Lark(
        GRAMMAR,
        parser="earley",
        lexer="dynamic",
        ambiguity="resolve",
        start=["program", "expression"],
    )
